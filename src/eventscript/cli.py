""" Runs an event script outside the game and prints the commands it emits.

Useful for checking authored content: control flow runs against an empty
game state (plus any --var bindings) and every command comes out in order.
"""

import sys
import argparse
import contextlib
import json
import logging
from typing import Any, Optional, Sequence

from eventscript import config, core, util
from eventscript.context import ABSENT, EventContext, parse_literal
from eventscript.interpreter import ScriptInterpreter, is_indented_script
from eventscript.script import FlatScript


def parse_var(binding:str) -> tuple[str, Any]:
    name, sep, text = binding.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f'expected NAME=VALUE, got "{binding}"')
    value = parse_literal(text)
    if value is ABSENT:
        value = text
    return name.strip(), value


def main(argv:Optional[Sequence[str]]=None) -> int:
    with contextlib.ExitStack() as context_stack:
        parser = argparse.ArgumentParser(description="run an event script and print the commands it emits")
        parser.add_argument("script", type=str,
                help="script file to run, \"-\" for stdin")
        parser.add_argument("-o", "--output", nargs="?", type=str, default="-",
                help="file to write commands to, \"-\" for stdout. default \"-\"")
        parser.add_argument("--var", action="append", type=parse_var, default=[],
                help="NAME=VALUE binding visible to the script, may be repeated")
        parser.add_argument("--config", type=str, default=None,
                help="toml file with settings overrides")
        parser.add_argument("--json", action="store_true",
                help="print one json object per command")
        parser.add_argument("-v", "--verbose", action="store_true")
        parser.add_argument("--pdb", action="store_true")

        args = parser.parse_args(argv)

        logging.basicConfig(
                stream=sys.stderr,
                format=config.Settings.logging.FORMAT,
                level=logging.DEBUG if args.verbose else config.Settings.logging.LEVEL,
        )
        # send warnings to the logger
        logging.captureWarnings(True)
        logger = logging.getLogger(__name__)

        if args.pdb:
            context_stack.enter_context(util.PDBManager())

        if args.config:
            config.load_config(args.config)

        if args.script == "-":
            source = sys.stdin.read().splitlines()
        else:
            fin = context_stack.enter_context(open(args.script, "rt", encoding="utf-8"))
            source = fin.read().splitlines()

        if args.output == "-":
            fout = sys.stdout
        else:
            fout = context_stack.enter_context(open(args.output, "wt", encoding="utf-8"))

        game = core.AbstractGamestate()
        context = EventContext.for_game(game, local_args=dict(args.var))

        processor:Any
        if is_indented_script(source):
            processor = ScriptInterpreter(source, context=context)
        else:
            processor = FlatScript(source)

        count = 0
        while (command := processor.fetch_next_command()) is not None:
            if args.json:
                fout.write(json.dumps(command.to_dict()))
            else:
                fout.write(str(command))
            fout.write("\n")
            count += 1

        logger.info(f'{args.script} emitted {count} commands')
    return 0


if __name__ == "__main__":
    sys.exit(main())
