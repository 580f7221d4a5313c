"""
Registry of subdomain discovery techniques.

Techniques register themselves via the :meth:`TechniqueRegistry.register`
decorator.  The discovery engine asks the registry for every technique (or a
requested subset) in attribution-priority order.
"""

from __future__ import annotations

from typing import Iterable, Optional, Type

from deepscan.engine.results import METHOD_PRIORITY, DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique


class TechniqueRegistry:
    """Manages all available discovery techniques.

    Techniques are stored in a class-level dictionary keyed by their
    :class:`DiscoveryMethod`.

    Example::

        @TechniqueRegistry.register
        class MyTechnique(BaseDiscoveryTechnique):
            method = DiscoveryMethod.WORDLIST
            ...
    """

    _techniques: dict[DiscoveryMethod, Type[BaseDiscoveryTechnique]] = {}

    @classmethod
    def register(
        cls, technique_class: Type[BaseDiscoveryTechnique]
    ) -> Type[BaseDiscoveryTechnique]:
        """Class-method decorator that registers a technique.

        Returns:
            The unmodified *technique_class* so the decorator is transparent.
        """
        cls._techniques[technique_class.method] = technique_class
        return technique_class

    @classmethod
    def get(cls, method: DiscoveryMethod) -> BaseDiscoveryTechnique:
        """Instantiate a single technique.

        Raises:
            KeyError: If no technique is registered for *method*.
        """
        return cls._techniques[method]()

    @classmethod
    def get_all(
        cls, selected: Optional[Iterable[DiscoveryMethod | str]] = None
    ) -> list[BaseDiscoveryTechnique]:
        """Return fresh instances in attribution-priority order.

        Args:
            selected: Optional subset of methods (enum members or their
                      values).  ``None`` or empty means all of them.
        """
        wanted = {DiscoveryMethod(item) for item in selected} if selected else None
        return [
            cls._techniques[method]()
            for method in METHOD_PRIORITY
            if method in cls._techniques and (wanted is None or method in wanted)
        ]
