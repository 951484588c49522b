"""
StateModule：可持久化状态的统一抽象

子类在 __init__ 中调用 register_state() 声明需要保存的属性；
属性值本身是 StateModule 时会被自动识别为子模块，state_dict() 递归导出。
"""

from collections.abc import Callable
from typing import Any


class StateModule:
    """状态模块基类"""

    def __init__(self) -> None:
        self._registered_states: dict[str, tuple[Callable | None, Callable | None]] = {}
        self._module_dict: dict[str, "StateModule"] = {}

    def __setattr__(self, key: str, value: Any) -> None:
        if not key.startswith("_"):
            modules = self.__dict__.get("_module_dict")
            if isinstance(value, StateModule):
                if modules is None:
                    raise RuntimeError(
                        f"Call super().__init__() in {type(self).__name__} before assigning "
                        f"the sub module '{key}'"
                    )
                modules[key] = value
            elif modules is not None and key in modules:
                del modules[key]
        super().__setattr__(key, value)

    def register_state(
        self,
        attr_name: str,
        custom_to_json: Callable[[Any], Any] | None = None,
        custom_from_json: Callable[[Any], Any] | None = None,
    ) -> None:
        """声明一个需要持久化的属性，可指定自定义序列化/反序列化函数"""
        if not hasattr(self, attr_name):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{attr_name}'")
        self._registered_states[attr_name] = (custom_to_json, custom_from_json)

    def state_dict(self) -> dict[str, Any]:
        state: dict[str, Any] = {
            name: module.state_dict() for name, module in self._module_dict.items()
        }
        for attr_name, (to_json, _) in self._registered_states.items():
            value = getattr(self, attr_name)
            state[attr_name] = to_json(value) if to_json else value
        return state

    def load_state_dict(self, state: dict[str, Any], strict: bool = True) -> None:
        """从 state_dict 恢复；strict=True 时缺少任何已注册的键都会报错"""
        for name, module in self._module_dict.items():
            if name in state:
                module.load_state_dict(state[name], strict=strict)
            elif strict:
                raise KeyError(f"Key '{name}' not found in state dict of {type(self).__name__}")

        for attr_name, (_, from_json) in self._registered_states.items():
            if attr_name in state:
                value = state[attr_name]
                setattr(self, attr_name, from_json(value) if from_json else value)
            elif strict:
                raise KeyError(f"Key '{attr_name}' not found in state dict of {type(self).__name__}")
