"""Downstream processor collaborators.

A downstream processor works on the derived source tree once the mirror
and its expansions are current. cpanproc only needs two things from it:
the ``source`` directory it reads from and a ``run()`` entry point.
"""

import importlib
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from cpanproc.core.errors import ProcessorError

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceProcessor(Protocol):
    """Interface of a downstream processor."""

    @property
    def source(self) -> Path:
        """Directory the processor reads its input files from."""
        ...

    def run(self) -> object:
        """Process the source directory."""
        ...


class ExpandOnlyProcessor:
    """Processor that only reports on the expanded source tree.

    Used when cpanproc maintains the mirror and expansion for some other
    tool that runs separately.

    Args:
        source: Derived source directory.
    """

    def __init__(self, source: Path) -> None:
        self._source = Path(source)

    @property
    def source(self) -> Path:
        """Directory holding the expanded archives."""
        return self._source

    def run(self) -> int:
        """Count the files available for processing.

        Returns:
            Number of regular files below the source directory.
        """
        total = sum(len(filenames) for _, _, filenames in os.walk(self._source))
        logger.info("%d files ready for processing in %s", total, self._source)
        return total


def load_processor(target: str, source: Path) -> SourceProcessor:
    """Instantiate a processor from a ``module:attribute`` reference.

    The attribute must be a callable accepting the source directory and
    returning a SourceProcessor.

    Args:
        target: Reference such as ``"mytool.processing:build_processor"``.
        source: Derived source directory handed to the factory.

    Returns:
        The constructed processor.

    Raises:
        ProcessorError: If the reference cannot be resolved or the result
            is not a SourceProcessor.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        msg = f"Processor reference must look like 'module:attribute', got {target!r}"
        raise ProcessorError(msg)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ProcessorError(f"Cannot import processor module {module_name!r}: {e}") from e

    factory = getattr(module, attribute, None)
    if factory is None or not callable(factory):
        raise ProcessorError(f"{target!r} is not a callable processor factory")

    processor = factory(source)
    if not isinstance(processor, SourceProcessor):
        raise ProcessorError(f"{target!r} did not return a SourceProcessor object")
    return processor
