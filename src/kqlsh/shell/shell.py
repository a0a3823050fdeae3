"""Interactive read-eval-print loop.

Reads a line, runs it through the CommandRunner, offers the result to the
owning module's decipher hook and renders it. A failing command never ends
the session:

    Syntax error: Expected 3 argument(s), got 1
    Usage: kget <topic> <partition> <offset> [-f format]

    Runtime error: Topic 'quotes' not found

Modules are shut down when the loop ends, however it ends.
"""

from typing import Any, Callable, Optional

from rich.console import Console

from kqlsh.codecs import CodecRegistry
from kqlsh.command import CommandRunner, ModuleManager, Session
from kqlsh.common.config import config
from kqlsh.common.errors import CommandSyntaxError, KqlshError
from kqlsh.common.logging import get_logger
from kqlsh.modules import CoreModule, KafkaModule, ZookeeperModule
from kqlsh.render import Renderer

logger = get_logger(__name__, component="shell")

# lines that only look at history are not recorded in it
_UNRECORDED = ("history",)


class Shell:
    """The kqlsh console.

    Args:
        session: Session state (module manager, history, flags)
        renderer: Result renderer (stdout)
        errors: Console for error messages (stderr)
        input_fn: Prompt reader; ``input`` by default
    """

    def __init__(
        self,
        session: Session,
        renderer: Optional[Renderer] = None,
        errors: Optional[Console] = None,
        input_fn: Callable[[str], str] = input,
    ):
        self.session = session
        self.runner = CommandRunner(session.manager)
        self.renderer = renderer or Renderer()
        self.errors = errors or Console(stderr=True)
        self.input_fn = input_fn

    @classmethod
    def create(
        cls,
        bootstrap_servers: Optional[str] = None,
        zookeeper_hosts: Optional[str] = None,
        debug: bool = False,
        **kwargs: Any,
    ) -> "Shell":
        """Build a shell with the core, kafka and zookeeper modules loaded."""
        manager = ModuleManager()
        session = Session(manager=manager, debug=debug or config.shell.debug)
        manager.register(CoreModule(session))
        codecs = CodecRegistry()
        manager.register(KafkaModule(bootstrap_servers=bootstrap_servers, codecs=codecs))
        manager.register(ZookeeperModule(hosts=zookeeper_hosts, codecs=codecs))
        manager.use(config.shell.default_module)
        return cls(session, **kwargs)

    @property
    def prompt(self) -> str:
        return self.session.manager.active.prompt()

    def execute(self, line: str) -> bool:
        """Run one line and render its result. Returns False if the command failed."""
        try:
            outcome = self.runner.run(line)
            if outcome is None:
                return True
            deciphered = outcome.command.module.decipher(outcome.value)
            self.renderer.render(outcome.value if deciphered is None else deciphered)
        except CommandSyntaxError as e:
            self._error(f"Syntax error: {e}")
            if e.usage:
                self._error(e.usage)
            return False
        except KqlshError as e:
            self._error(f"Runtime error: {e}")
            self._trace(line)
            return False
        except Exception as e:
            self._error(f"Runtime error: {type(e).__name__}: {e}")
            self._trace(line)
            return False

        if line.strip().split(maxsplit=1)[0].lower() not in _UNRECORDED:
            self.session.history.add(line)
        return True

    def run(self) -> None:
        """Read and execute lines until ``exit`` or end of input."""
        logger.info("Shell started", module=self.session.manager.active.name)
        try:
            while self.session.alive:
                try:
                    line = self.input_fn(self.prompt)
                except EOFError:
                    break
                except KeyboardInterrupt:
                    # Ctrl-C at the prompt discards the line
                    self.errors.print()
                    continue
                self.execute(line)
        finally:
            self.close()

    def close(self) -> None:
        self.session.manager.shutdown()
        self.runner.close()
        logger.info("Shell closed")

    def _error(self, message: str) -> None:
        self.errors.print(message, markup=False, highlight=False)

    def _trace(self, line: str) -> None:
        if self.session.debug:
            logger.exception("Command failed", line=line)
