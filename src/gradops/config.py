"""
# Global configuration for the gradops package.

User can modify this configuration in 2 ways:

## Permanent change
```python
from gradops import config
config.Configuration(strict_arity=False)
```

## Temporary change
```python
from gradops import config
with config.Configuration(engine=engine):
    ...
```
"""

from __future__ import annotations

import collections
import contextlib
import types
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Type

from gradops import callbacks

if TYPE_CHECKING:
    from gradops import graph, hashing, runtime

_CALLBACKS_KEY = "__callbacks__"


class _StackedConfigMeta(type):
    __singletons__: ClassVar[dict[Type, Any]] = {}
    __regular_attrs__: set[str]  # attrs that are not accessed through context stack
    __context_stack__: collections.ChainMap[str, Any]  # stack of contexts that hold all attrs
    __callback_stack__: callbacks.CallbackStack  # stack of callbacks

    def __call__(cls, *callback: callbacks.Callback, **config_dict: Any) -> type[Configuration]:
        assert not (kwargs := {k: v for k, v in config_dict.items() if v is None}), f"{kwargs=}"
        config_dict[_CALLBACKS_KEY] = callback
        if cls not in cls.__singletons__:  # initialize:=set class vars for the first time
            cls.__context_stack__ = collections.ChainMap(config_dict)
            cls.__callback_stack__ = callbacks.CallbackStack(callback)
            cls.__regular_attrs__ = set(dir(cls)) - set(dir(_StackedConfigMeta))
            cls.__singletons__[cls] = cls
        else:  # update the stacks with new contexts
            cls.__callback_stack__.insert_callbacks(*callback)
            cls.__context_stack__.maps.insert(0, config_dict)
        return cls.__singletons__[cls]

    def __getattr__(cls: type[_StackedConfigMeta], key: str):
        if key.startswith("__") or key in cls.__regular_attrs__:
            return super().__getattribute__(key)
        try:
            return cls.__context_stack__[key]
        except KeyError:
            raise AttributeError(f"{cls.__name__} has no setting {key!r}") from None

    def __enter__(cls) -> None:
        for enter_callback in cls.__callback_stack__[callbacks.OnCtxEnterCallBack]:
            enter_callback.on_ctx_enter()

    def __exit__(cls, exc_type: type[Exception], exc_value: Exception, traceback: types.TracebackType) -> None:
        for exit_callback in cls.__callback_stack__[callbacks.OnCtxExitCallBack]:
            exit_callback.on_ctx_exit(exc_type, exc_value, traceback)
        assert len(cls.__context_stack__.maps) > 1, "cannot exit the base configuration"
        dropped_context = cls.__context_stack__.maps.pop(0)
        cls.__callback_stack__.drop_callbacks(*dropped_context[_CALLBACKS_KEY])


class Configuration(contextlib.ContextDecorator, metaclass=_StackedConfigMeta):
    """Configuration for the gradops package."""

    engine: runtime.Engine
    strict_arity: bool
    digest: Callable[[], hashing.Digest]

    def __init__(
        self,
        *callback: callbacks.Callback,
        engine: runtime.Engine | None = None,
        strict_arity: bool | None = None,
        digest: Callable[[], hashing.Digest] | None = None,
        **context: Any,
    ) -> None: ...

    @classmethod
    def on_node_creation(cls, node: graph.Node) -> None:
        for callback in cls.__callback_stack__[callbacks.OnNodeCreationCallBack]:
            callback.on_node_creation(node)
