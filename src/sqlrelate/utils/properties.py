from typing import Any, Callable, Generic, TypeVar, cast

_T = TypeVar("_T")
_R = TypeVar("_R")


class _lazyclassproperty(Generic[_T, _R]):
    """Descriptor that lazily computes a value once per owner class.

    Defined once on a base class, it computes and caches a separate value for
    every subclass it is accessed through. A subclass can still override it
    with a plain class attribute.

    Example:
        class Base:
            table_name = lazyclassproperty(lambda cls: cls.__name__.lower())

        class Dog(Base): ...

        Dog.table_name  # "dog", computed on first access
    """

    def __init__(self, func: Callable[[type[_T]], _R]) -> None:
        """Initialize with a function that computes the value.

        Args:
            func: Function that takes the owner class and returns the value.
        """
        self._func = func
        self._values: dict[type[_T], _R] = {}

    def __get__(self, instance: Any, owner: type[_T]) -> _R:
        if owner not in self._values:
            self._values[owner] = self._func(owner)
        return self._values[owner]


def lazyclassproperty(func: Callable[[type[_T]], _R]) -> _R:
    return cast(_R, _lazyclassproperty(func))
