"""
The utility class `LazyLoadingDict` is a dictionary whose values are
created on first access by a factory function, and memoized.

It is used in two places in the package:

- the tool registry, where the key is a tool name and the factory
dispatches over the closed set of built-in tools, raising an error
for names outside the set;

- the model factory, where the key is a frozen settings object and
the value is the LangChain chat model built from it, so that
agents configured in the same way share one client.

Values may also be assigned directly, bypassing the factory. This is
how custom tools are registered. An assignment never replaces an
existing value: the key has to be deleted first.
"""

from collections.abc import Callable
from typing import TypeVar

# ValueT is the parameter for the stored valued, KeyT for the keys.
ValueT = TypeVar('ValueT')
KeyT = TypeVar('KeyT')


class LazyLoadingDict(dict[KeyT, ValueT]):
    """A dictionary creating and memoizing values of type ValueT
    from keys of type KeyT through a factory function.

    Example:
    ```python
    from typing import Literal

    Operation = Literal['add', 'multiply']

    def _create_operation(name: Operation) -> Callable[[int, int], int]:
        match name:
            case 'add':
                return lambda a, b: a + b
            case 'multiply':
                return lambda a, b: a * b
            case _:
                raise ValueError(f"Invalid operation: {name}")

    operations = LazyLoadingDict(_create_operation)
    operations['add'](3, 4)  # 7, created on first access
    operations['power']      # ValueError
    ```

    Expected behaviour: the factory function may raise; nothing is
    stored in that case.
    """

    def __init__(
        self,
        key_creator_func: Callable[[KeyT], ValueT],
        destructor_func: Callable[[ValueT], None] | None = None,
    ):
        super().__init__()
        self._key_creator_func = key_creator_func
        self._destructor_func = destructor_func

    def _destroy_value(self, value: ValueT) -> None:
        if self._destructor_func:
            self._destructor_func(value)
        elif hasattr(value, "close") and callable(value.close):  # type: ignore
            value.close()  # type: ignore

    def __getitem__(self, key: KeyT) -> ValueT:
        if key in self:
            return super().__getitem__(key)

        value: ValueT = self._key_creator_func(key)
        super().__setitem__(key, value)
        return value

    def __setitem__(self, key: KeyT, value: ValueT) -> None:
        """Set a value directly, bypassing the factory function.

        Raises:
            ValueError: If the key already exists in the dictionary.
        """
        if key in self:
            raise ValueError(
                f"Key '{key}' already exists. Delete it first to overwrite."
            )
        super().__setitem__(key, value)

    def __delitem__(self, key: KeyT) -> None:
        if key in self:
            self._destroy_value(super().__getitem__(key))
        super().__delitem__(key)

    def clear(self) -> None:
        for value in list(self.values()):
            self._destroy_value(value)
        super().clear()
