from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from modelcfg.config import writer
from modelcfg.config.registry import FeatureRegistry
from modelcfg.errors import ValidationError
from modelcfg.utils.hexdump import hexdump


def _parse_options(
    command: str,
    argv: list[str],
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
    npos: int = 0,
    extra_pos: int = 0,
) -> tuple[dict[str, str], list[str]]:
    """Split ``-key value`` options from positional arguments."""
    required = tuple(required)
    allowed = set(required) | set(optional)
    options: dict[str, str] = {}
    positional: list[str] = []
    i = 0
    while i < len(argv):
        a = argv[i]
        if a.startswith("-") and len(a) > 1 and not a[1].isdigit():
            key = a.lstrip("-")
            if key not in allowed:
                raise ValidationError(f"{command}: unknown option '{a}'")
            if i + 1 >= len(argv):
                raise ValidationError(f"{command}: option '{a}' needs a value")
            options[key] = argv[i + 1]
            i += 2
            continue
        positional.append(a)
        i += 1
    missing = [k for k in required if k not in options]
    if missing:
        raise ValidationError(f"{command}: missing option(s) " + ", ".join(f"-{k}" for k in missing))
    if not npos <= len(positional) <= npos + extra_pos:
        raise ValidationError(f"{command}: expected {npos} argument(s), got {len(positional)}")
    return options, positional


@dataclass
class Commands:
    registry: FeatureRegistry

    def cmd_set_model(self, argv: list[str]) -> str:
        """set_model [-feature F] MODEL"""
        opts, pos = _parse_options("set_model", argv, optional=("feature",), npos=1)
        s = self.registry.set_model(pos[0], feature=opts.get("feature"))
        return f"feature {s.feature}: model {s.model}, {s.total_bits} bits, {len(s.table)} bitfields"

    def cmd_set_api(self, argv: list[str]) -> str:
        """set_api [-feature F] FILE"""
        opts, pos = _parse_options("set_api", argv, optional=("feature",), npos=1)
        self.registry.set_api(pos[0], feature=opts.get("feature"))
        return ""

    def cmd_set_attr(self, argv: list[str]) -> str:
        """set_attr [-feature F] -instance I -name N -value V"""
        opts, _ = _parse_options(
            "set_attr", argv, required=("instance", "name", "value"), optional=("feature",)
        )
        self.registry.set_attr(opts["instance"], opts["name"], opts["value"], feature=opts.get("feature"))
        return ""

    def cmd_get_attr(self, argv: list[str]) -> str:
        """get_attr [-feature F] -instance I -name N"""
        opts, _ = _parse_options("get_attr", argv, required=("instance", "name"), optional=("feature",))
        v = self.registry.get_attr(opts["instance"], opts["name"], feature=opts.get("feature"))
        return f"{opts['instance']}.{opts['name']} = {v} (0x{v:X})"

    def cmd_set_design(self, argv: list[str]) -> str:
        """set_design [-feature F] FILE"""
        opts, pos = _parse_options("set_design", argv, optional=("feature",), npos=1)
        n = self.registry.set_design(pos[0], feature=opts.get("feature"))
        return f"applied {n} design attribute(s)"

    def cmd_write(self, argv: list[str]) -> str:
        """write [-feature F] -format BIT|WORD|DETAIL|TCL|BIN FILE"""
        opts, pos = _parse_options("write", argv, required=("format",), optional=("feature",), npos=1)
        self.registry.write(opts["format"], pos[0], feature=opts.get("feature"))
        return ""

    def cmd_dump_ric(self, argv: list[str]) -> str:
        """dump_ric MODEL FILE"""
        _, pos = _parse_options("dump_ric", argv, npos=2)
        n = self.registry.dump_ric(pos[0], pos[1])
        return f"dumped {n} line(s) to {pos[1]}"

    def cmd_list(self, argv: list[str]) -> str:
        """list [-feature F] [INSTANCE]"""
        opts, pos = _parse_options("list", argv, optional=("feature",), extra_pos=1)
        s = self.registry.session(opts.get("feature"), "list")
        wanted: Optional[str] = pos[0] if pos else None
        lines = []
        for b in s.table.ordered():
            if wanted and wanted not in (b.block_name, b.user_name):
                continue
            lines.append(f"{b.addr:6d} {b.size:2d}  {b.instance_name}.{b.name} = {b.value}")
        return "\n".join(lines) if lines else "(no bitfields)"

    def cmd_image(self, argv: list[str]) -> str:
        """image [-feature F]"""
        opts, _ = _parse_options("image", argv, optional=("feature",))
        s = self.registry.session(opts.get("feature"), "image")
        data = writer.pack_image(s.table)
        return hexdump(bytes(data[: (s.total_bits + 7) // 8]), total_bits=s.total_bits)

    def cmd_features(self, argv: list[str]) -> str:
        lines = []
        for name, s in self.registry.sessions.items():
            mark = "*" if name == self.registry.current_feature else " "
            lines.append(f"{mark} {name:20} model={s.model} bits={s.total_bits} apis={len(s.catalog.groups)}")
        return "\n".join(lines) if lines else "(no features)"

    def cmd_models(self, argv: list[str]) -> str:
        names = self.registry.library.model_names()
        return "\n".join(names) if names else "(no models)"
