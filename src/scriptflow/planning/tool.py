"""The text-generation tool boundary.

Everything the orchestrator knows about language models is the
``TextGenerationTool`` protocol: ``generate(system, user) -> str``. The text
that comes back is untrusted data; ``parse_tool_response`` turns it into a
tagged result and never raises.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Generic, Literal, Optional, Protocol, TypeVar

import llm
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from scriptflow.core.exceptions import ToolFailure
from scriptflow.core.json_utils import parse_json_object
from scriptflow.core.settings import DEFAULT_MODEL

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TextGenerationTool(Protocol):
    """Anything that turns a system prompt and a user prompt into text."""

    def generate(self, system: str, user: str) -> str: ...


class LLMTextTool:
    """Text generation backed by the ``llm`` library, with a hard timeout.

    Args:
        model_name: Any model id ``llm.get_model`` accepts
        temperature: Sampling temperature passed to the model
        timeout_seconds: Wall-clock limit for one call
    """

    def __init__(self, model_name: str = DEFAULT_MODEL, temperature: float = 0.0, timeout_seconds: float = 60.0):
        self.model_name = model_name
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def _call(self, system: str, user: str) -> str:
        model = llm.get_model(self.model_name)
        response = model.prompt(user, system=system, temperature=self.temperature)
        return response.text()

    def generate(self, system: str, user: str) -> str:
        """Run one prompt.

        Raises:
            ToolFailure: ``timeout`` when the call exceeds the limit,
                ``unreachable`` when the provider call fails, ``empty`` when
                the model returns no text
        """
        # Not a context manager: its __exit__ would wait for a hung call
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(self._call, system, user)
            text = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError as e:
            raise ToolFailure("timeout", f"no response within {self.timeout_seconds:g}s") from e
        except Exception as e:
            raise ToolFailure("unreachable", f"{type(e).__name__} from model '{self.model_name}'", e) from e
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if not text or not text.strip():
            raise ToolFailure("empty", f"model '{self.model_name}' returned no text")
        logger.debug(f"Tool returned {len(text)} characters")
        return text


@dataclass
class ParsedResponse(Generic[ModelT]):
    """Tagged result of parsing tool output."""

    status: Literal["success", "parse_error", "shape_error"]
    value: Optional[ModelT] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_failure(self) -> ToolFailure:
        return ToolFailure(self.status if self.status != "success" else "shape_error", self.error)


def parse_tool_response(text: str, expected_type: type[ModelT]) -> ParsedResponse[ModelT]:
    """Parse untrusted tool output into ``expected_type``.

    Tries a strict JSON parse (after stripping code fences), then the first
    balanced ``{...}`` substring, then validates the shape with pydantic.

    Args:
        text: Raw text returned by the tool
        expected_type: Response model to validate against

    Returns:
        ``success`` with the model, or ``parse_error``/``shape_error`` with a message
    """
    data = parse_json_object(text)
    if data is None:
        return ParsedResponse(status="parse_error", error="response contains no JSON object")

    try:
        value = expected_type.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", str(e))
        logger.debug(f"Tool response failed {expected_type.__name__} validation: {e}")
        return ParsedResponse(
            status="shape_error",
            error=f"{location}: {message}" if location else message,
        )
    return ParsedResponse(status="success", value=value)
