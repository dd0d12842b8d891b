"""
A pretty-printer for tinyfn runtime values.
"""
import collections.abc

from tinyfn.tinyfn_datatypes import BigInt, Closure


class Printer:
    """Formats tinyfn values into readable, source-like strings."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def display(self, obj) -> str:
        """Like pformat, but strings are shown without quotes (used by `print`)."""
        if isinstance(obj, str):
            return obj
        return self.pformat(obj)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict
        if isinstance(obj, list):
            return self._pformat_list
        if callable(obj):
            return self._pformat_builtin
        # Default to Python's repr for unknown types
        return repr

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            BigInt: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            list: self._pformat_list,
            dict: self._pformat_dict,
            Closure: self._pformat_closure,
        }

    def _pformat_primitive(self, obj):
        return str(int(obj))

    def _pformat_float(self, obj):
        return repr(obj)

    def _pformat_str(self, obj):
        escaped = obj.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'

    def _pformat_bool(self, obj):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj):
        return 'none'

    def _pformat_list(self, obj):
        return "[" + ", ".join(self.pformat(item) for item in obj) + "]"

    def _pformat_dict(self, obj):
        if not obj:
            return "{}"
        # Note: keys are printed bare, which is not valid source for every key.
        pairs = [f"{key}: {self.pformat(value)}" for key, value in obj.items()]
        return "{" + ", ".join(pairs) + "}"

    def _pformat_closure(self, obj):
        return f"<fn ({', '.join(obj.params)})>"

    def _pformat_builtin(self, obj):
        name = getattr(obj, "__name__", None) or type(obj).__name__
        return f"<builtin {name.lstrip('_')}>"
