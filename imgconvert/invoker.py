# imgconvert/invoker.py
import os
import time
import logging
import subprocess
from dataclasses import dataclass
from typing import Optional

from . import config
from .exceptions import ConversionError, ConversionTimeout, MissingDecoderError, ToolError

logger = logging.getLogger(__name__)

RAW_FORMATS = frozenset({"cr2", "nef", "arw", "raf", "orf", "dng", "rw2", "crw", "pef", "srw", "x3f"})
HEIF_FORMATS = frozenset({"heic", "heif"})

RAW_OPTIONS = ("-colorspace", "sRGB", "-auto-level", "-quality", "90", "-strip")
MISSING_DECODER_MARKER = "no decode delegate"


@dataclass(frozen=True)
class InvocationPlan:
    """How to call the conversion tool for one source format."""

    name: str
    options: tuple[str, ...]
    heavy: bool = False
    fallback: bool = False

    @property
    def timeout(self) -> int:
        return config.HEAVY_CONVERT_TIMEOUT_SECS if self.heavy else config.CONVERT_TIMEOUT_SECS

    def command(self, input_path: str, output_path: str) -> list[str]:
        return [config.MAGICK_BIN, input_path, *self.options, output_path]


GENERIC_PLAN = InvocationPlan("generic", ("-quality", "90"))
HEIF_PLAN = InvocationPlan("heif", ("-quality", "90"))
RAW_PLAN = InvocationPlan("raw", RAW_OPTIONS)

FORMAT_PLANS: dict[str, InvocationPlan] = {
    **{fmt: RAW_PLAN for fmt in RAW_FORMATS},
    **{fmt: HEIF_PLAN for fmt in HEIF_FORMATS},
    # Sony ARW: higher quality, 4:2:0 chroma subsampling
    "arw": InvocationPlan(
        "raw-arw",
        ("-colorspace", "sRGB", "-auto-level", "-quality", "95", "-sampling-factor", "4:2:0"),
        heavy=True,
    ),
    # libraw delegate is unreliable for DNG; retried through dcraw_emu
    "dng": InvocationPlan("raw-dng", RAW_OPTIONS, heavy=True, fallback=True),
}


def select_plan(source_format: str) -> InvocationPlan:
    return FORMAT_PLANS.get(source_format.lower(), GENERIC_PLAN)


def _decode_output(data: Optional[bytes]) -> str:
    """Tail of captured tool output, kept for diagnostics.

    Only the retained text is bounded by MAX_TOOL_OUTPUT_BYTES; the capture
    itself is not, and a verbose child is not killed for it.
    """
    if not data:
        return ""
    if len(data) > config.MAX_TOOL_OUTPUT_BYTES:
        data = data[-config.MAX_TOOL_OUTPUT_BYTES:]
    return data.decode("utf-8", errors="replace").strip()


def _run(cmd: list[str], timeout: float, source_format: str) -> str:
    """Run one tool command; return its stdout or raise a ConversionError subclass."""
    logger.info(f"[Exec] {' '.join(cmd)} (timeout={timeout:.0f}s)")
    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        stderr = _decode_output(e.stderr)
        raise ConversionTimeout(
            f"Conversion timeout ({timeout:.0f}s) for {source_format} file",
            source_format=source_format,
            stderr=stderr,
        ) from e
    except OSError as e:
        raise ToolError(
            f"Conversion tool could not be started ({cmd[0]}): {e}",
            source_format=source_format,
        ) from e

    stdout = _decode_output(proc.stdout)
    stderr = _decode_output(proc.stderr)
    if proc.returncode != 0:
        if MISSING_DECODER_MARKER in stderr:
            raise MissingDecoderError(
                f"No decode delegate for {source_format.upper()} files. stderr: {stderr}",
                source_format=source_format,
                stderr=stderr,
            )
        raise ToolError(
            f"Conversion failed: {cmd[0]} exited with code {proc.returncode}. stderr: {stderr}",
            source_format=source_format,
            stderr=stderr,
        )
    return stdout


def convert_with_fallback_pipeline(input_path: str, output_path: str, source_format: str) -> None:
    """
    Two-stage DNG conversion: dcraw_emu extracts a 16-bit TIFF, then the
    primary tool converts that TIFF. Both stages share one deadline and
    the intermediate TIFF is always removed.
    """
    intermediate = f"{os.path.splitext(input_path)[0]}_intermediate.tiff"
    deadline = time.monotonic() + config.HEAVY_CONVERT_TIMEOUT_SECS
    extract_cmd = [config.DCRAW_EMU_BIN, "-w", "-T", "-o", "1", "-Z", intermediate, input_path]
    convert_cmd = RAW_PLAN.command(intermediate, output_path)

    try:
        _run(extract_cmd, deadline - time.monotonic(), source_format)
        if not os.path.exists(intermediate) or os.path.getsize(intermediate) == 0:
            raise ToolError(
                f"{config.DCRAW_EMU_BIN} did not produce an intermediate file",
                source_format=source_format,
            )
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ConversionTimeout(
                f"Conversion timeout ({config.HEAVY_CONVERT_TIMEOUT_SECS}s) for {source_format} file",
                source_format=source_format,
            )
        _run(convert_cmd, remaining, source_format)
    except ConversionError as e:
        logger.error(f"[DNG fallback] Failed: {e}")
        raise type(e)(
            f"DNG fallback conversion failed: {e}",
            source_format=e.source_format,
            stderr=e.stderr,
        ) from e
    finally:
        try:
            os.remove(intermediate)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[DNG fallback] Could not clean up {intermediate}: {e}")

    logger.info(f"[DNG fallback] Conversion successful: {output_path}")


def perform_conversion(input_path: str, output_path: str, source_format: str, target_format: str) -> InvocationPlan:
    """Convert ``input_path`` into ``output_path`` with the plan for ``source_format``.

    Raises ConversionTimeout, MissingDecoderError or ToolError. Returns the
    plan that was used so callers can log it.
    """
    source = source_format.lower()
    target = target_format.lower()
    plan = select_plan(source)
    logger.info(f"[Convert] {source} -> {target} using plan={plan.name}")

    try:
        stdout = _run(plan.command(input_path, output_path), plan.timeout, source)
    except ConversionError as e:
        logger.error(f"[Convert] {e.code} for {source}: {e}")
        if e.stderr:
            logger.error(f"[Convert] stderr: {e.stderr}")
        if not plan.fallback:
            raise
        logger.info("[Convert] Trying fallback DNG conversion with dcraw_emu...")
        convert_with_fallback_pipeline(input_path, output_path, source)
        return plan

    if stdout:
        logger.debug(f"[Convert] stdout: {stdout}")
    logger.info(f"[Convert] Conversion successful for {source}: {output_path}")
    return plan
