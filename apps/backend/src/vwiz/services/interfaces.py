"""Service interfaces (Protocols) for the render server.

The frame-composition engine is an external collaborator. The render queue
only relies on the contract below, which keeps it testable with stubs.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from vwiz.compositions import Composition
from vwiz.jobs.cancellation import CancelToken

# Progress callback type: (progress: float 0-1) -> None
ProgressCallback = Callable[[float], None]


class ICompositionEngine(Protocol):
    """Interface for the frame-composition engine (Remotion wrapper)."""

    async def select_composition(
        self,
        composition_id: str,
        input_props: dict[str, Any],
    ) -> Composition:
        """Resolve a composition of the served bundle.

        Args:
            composition_id: Id registered in the bundle
            input_props: Props the composition is rendered with

        Returns:
            Composition with its resolved metadata

        Raises:
            CompositionNotFoundError: If the bundle has no such composition
            InvalidInputPropsError: If the props fail the composition schema
        """
        ...

    async def render_media(
        self,
        composition: Composition,
        input_props: dict[str, Any],
        output_location: Path,
        cancel_token: CancelToken,
        on_progress: ProgressCallback,
    ) -> Path:
        """Render a composition to a media file.

        The engine must react to ``cancel_token`` within a bounded interval
        by aborting and raising ``RenderCancelledError``. Progress is
        reported as non-decreasing fractions in [0, 1].

        Args:
            composition: Composition returned by ``select_composition``
            input_props: Props the composition is rendered with
            output_location: Path the media file is written to
            cancel_token: Cooperative cancellation signal
            on_progress: Called with the fraction rendered so far

        Returns:
            Path to the rendered file
        """
        ...
