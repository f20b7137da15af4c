"""Replacing PyJWT's built-in algorithms with KMS signing methods.

PyJWT resolves the ``alg`` header through the algorithm table of a PyJWS
object. The module-level ``jwt.encode``/``jwt.decode`` functions share one
global PyJWS, so overriding "RS256" there makes every caller in the process
use the KMS-backed method, with no change to their code.

That global override is process-wide state: set once, never unset. Tests and
embedders that want isolation pass their own PyJWS to SigningMethodRegistry.
"""

from __future__ import annotations

import functools
import threading
from typing import TYPE_CHECKING

from jwt import api_jws
from jwt.api_jws import PyJWS

if TYPE_CHECKING:
    from jwt.algorithms import Algorithm

    from .signing_method import KMSSigningMethod


class SigningMethodRegistry:
    """Algorithm table of one PyJWS object.

    Example:
        ```python
        registry = SigningMethodRegistry(PyJWS())
        registry.override(KMS_RS256)
        registry.get("RS256") is KMS_RS256  # True
        ```

    Attributes:
        _jws: PyJWS whose algorithm table is mutated.
        _lock: Serialises check-then-replace in override().
    """

    def __init__(self, jws: PyJWS | None = None) -> None:
        """Wrap ``jws``, or PyJWT's global PyJWS when omitted."""
        self._jws = jws if jws is not None else api_jws._jws_global_obj  # pyright: ignore[reportPrivateUsage]
        self._lock = threading.Lock()

    @property
    def jws(self) -> PyJWS:
        return self._jws

    def get(self, name: str) -> Algorithm:
        """Return the algorithm registered under ``name``.

        Raises:
            NotImplementedError: If nothing is registered under ``name``,
                exactly as PyJWS does.
        """
        return self._jws.get_algorithm_by_name(name)

    def override(self, method: KMSSigningMethod) -> KMSSigningMethod:
        """Register ``method`` under its own name, replacing any entry.

        Idempotent: when ``method`` is already registered the table is left
        untouched.
        """
        with self._lock:
            try:
                current = self._jws.get_algorithm_by_name(method.name)
            except NotImplementedError:
                current = None

            if current is method:
                return method
            if current is not None:
                self._jws.unregister_algorithm(method.name)
            self._jws.register_algorithm(method.name, method)
        return method


@functools.cache
def default_registry() -> SigningMethodRegistry:
    """Registry over PyJWT's global PyJWS, shared by the whole process."""
    return SigningMethodRegistry()
