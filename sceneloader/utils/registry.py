import importlib
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from ..logger.writer import Logger


class Registry(Iterable[Tuple[str, Any]]):
    """
    A name to object mapping, filled by decorating classes or functions.

    Registered objects are looked up by the name given in a config, e.g.
    ``cfg.data_set = "ColmapDataset"``.

    Parameters
    ----------
    name: str
        The name of the registry, used in error messages.
    modules: List[str] | None
        Modules imported on the first lookup so that the objects they
        register become visible without an explicit import.

    Examples
    --------
    >>> DATA_SET_REGISTRY = Registry("DATA_SET", modules=["sceneloader.dataset"])
    >>> @DATA_SET_REGISTRY.register()
    ... class MyDataset:
    ...     pass
    >>> DATA_SET_REGISTRY.get("MyDataset")
    """

    def __init__(self, name: str, modules: Optional[List[str]] = None) -> None:
        self._name = name
        self._obj_map: Dict[str, Any] = {}
        self._modules = list(modules or [])
        self._imported = False

    @property
    def name(self) -> str:
        return self._name

    def _do_register(self, name: str, obj: Any) -> None:
        if name in self._obj_map:
            raise KeyError(
                f"An object named '{name}' was already registered in '{self._name}' registry!"
            )
        self._obj_map[name] = obj

    def register(self, obj: Any = None, name: Optional[str] = None) -> Any:
        """
        Register `obj` under `name` (its ``__name__`` by default).

        Can be used as a decorator, ``@registry.register()``, or called
        directly, ``registry.register(obj)``.
        """
        if obj is None:
            def deco(func_or_class: Callable) -> Callable:
                self._do_register(name or func_or_class.__name__, func_or_class)
                return func_or_class
            return deco

        self._do_register(name or obj.__name__, obj)
        return obj

    def _import_modules(self) -> None:
        if self._imported:
            return
        self._imported = True
        for module in self._modules:
            importlib.import_module(module)

    def get(self, name: str) -> Any:
        """
        Get a registered object.

        Raises
        ------
        KeyError
            If nothing is registered under `name`.
        """
        ret = self._obj_map.get(name)
        if ret is None:
            self._import_modules()
            ret = self._obj_map.get(name)
        if ret is None:
            Logger.print(f"[red]'{name}' is not in {sorted(self._obj_map)}[/red]")
            raise KeyError(f"No object named '{name}' found in '{self._name}' registry!")
        return ret

    def __contains__(self, name: str) -> bool:
        if name not in self._obj_map:
            self._import_modules()
        return name in self._obj_map

    def __len__(self) -> int:
        return len(self._obj_map)

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(self._obj_map.items())

    def __repr__(self) -> str:
        return f"Registry(name={self._name!r}, items={sorted(self._obj_map)})"
