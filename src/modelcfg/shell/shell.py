from __future__ import annotations

import cmd
import shlex
from pathlib import Path

from modelcfg.config.registry import FeatureRegistry
from modelcfg.errors import ModelConfigError
from modelcfg.shell.commands import Commands
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


def split_script(text: str) -> list[str]:
    """Commands of a script: ';' or newline separated, '#' and '//' comment lines dropped."""
    parts = []
    for ln in text.splitlines():
        s = ln.strip()
        if not s or s.startswith("#") or s.startswith("//"):
            continue
        parts.extend(p for p in _split_commands(s) if p)
    return parts


def _split_commands(line: str) -> list[str]:
    # ';' inside single or double quotes belongs to the argument
    parts, cur, quote = [], [], None
    for ch in line:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == ";":
            parts.append("".join(cur).strip())
            cur = []
            continue
        cur.append(ch)
    parts.append("".join(cur).strip())
    return parts


class ModelConfigShell(cmd.Cmd):
    intro = "modelcfg interactive shell. Type 'help' for commands."
    prompt = "modelcfg> "

    def __init__(self, registry: FeatureRegistry):
        super().__init__()
        self.registry = registry
        self.cmds = Commands(registry=registry)
        self.last_ok = True

    def run_script(self, script: str, stop_on_error: bool = True) -> bool:
        for line in split_script(script):
            self.last_ok = True
            self.onecmd(line)
            if not self.last_ok and stop_on_error:
                log.error("script stopped at: %s", line)
                return False
        return True

    def run_file(self, path: Path, stop_on_error: bool = True) -> bool:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        return self.run_script(text, stop_on_error=stop_on_error)

    def precmd(self, line: str) -> str:
        self.last_ok = True
        return line

    def emptyline(self) -> bool:
        return False

    def default(self, line: str) -> None:
        self.last_ok = False
        try:
            argv = shlex.split(line)
        except ValueError as e:
            print(f"parse error: {e}")
            return
        if not argv:
            self.last_ok = True
            return
        # TCL output prefixes every command with "model_config"
        if argv[0] == "model_config":
            argv = argv[1:]
            if not argv:
                print("usage: model_config <command> ...")
                return

        name = argv[0].replace("-", "_")
        handler = getattr(self.cmds, f"cmd_{name}", None)
        if handler is None:
            print(f"unknown command: {argv[0]}")
            return
        try:
            out = handler(argv[1:])
            if out:
                print(out)
            self.last_ok = True
        except (ModelConfigError, OSError) as e:
            print(f"error: {e}")
        except Exception as e:
            log.exception("command failed")
            print(f"error: {e}")

    def do_source(self, arg: str) -> None:
        try:
            self.last_ok = self.run_file(Path(arg.strip()))
        except OSError as e:
            print(f"error: {e}")
            self.last_ok = False

    def do_exit(self, arg: str) -> bool:
        return True

    def do_quit(self, arg: str) -> bool:
        return True

    def do_EOF(self, arg: str) -> bool:
        print()
        return True

    def do_help(self, arg: str) -> None:
        if arg:
            handler = getattr(self.cmds, f"cmd_{arg.replace('-', '_')}", None)
            if handler is not None and handler.__doc__:
                print(handler.__doc__)
                return
        names = sorted(n[4:] for n in dir(self.cmds) if n.startswith("cmd_"))
        print("commands: " + " ".join(names + ["source", "exit"]))
