"""Turn raw CLI input into an ordered list of worker launch specs.

Resolution never fails: malformed counts degrade to ``1`` and empty input
falls back to the default queue.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from queue_fleet.supervisor.invocation import InvocationOptions, build_command
from queue_fleet.supervisor.models import QueueRequest, WorkerSpec

DEFAULT_QUEUE = "default"
DEFAULT_QUEUE_COUNT = 2
MIN_ID_WIDTH = 2


def parse_count(value: str | int | None) -> int:
    """Lenient worker count: anything missing, non-numeric or below 1 becomes 1."""

    if value is None:
        return 1
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return 1
    return parsed if parsed >= 1 else 1


def parse_queue_tokens(
    tokens: Sequence[str],
    *,
    default_queue: str = DEFAULT_QUEUE,
    default_count: int = DEFAULT_QUEUE_COUNT,
) -> list[QueueRequest]:
    """Consume ``name count name count ...`` two tokens at a time.

    A trailing name without a count gets one worker.
    """

    if not tokens:
        return [QueueRequest(name=default_queue, count=default_count)]

    requests: list[QueueRequest] = []
    for index in range(0, len(tokens), 2):
        name = tokens[index]
        raw_count = tokens[index + 1] if index + 1 < len(tokens) else None
        requests.append(QueueRequest(name=name, count=parse_count(raw_count)))
    return requests


def resolve_queue_requests(
    tokens: Sequence[str],
    count: int | None = None,
    *,
    default_queue: str = DEFAULT_QUEUE,
    default_count: int = DEFAULT_QUEUE_COUNT,
) -> list[QueueRequest]:
    """Pick between the queue-pairs form and the flat count form.

    Positional queue tokens win over ``count``.
    """

    if not tokens and count is not None:
        return [QueueRequest(name=None, count=parse_count(count))]
    return parse_queue_tokens(tokens, default_queue=default_queue, default_count=default_count)


def resolve_worker_specs(
    requests: Sequence[QueueRequest],
    options: InvocationOptions,
) -> list[WorkerSpec]:
    """Expand queue groups into specs numbered ``1..total`` across all groups."""

    specs: list[WorkerSpec] = []
    next_id = 1
    for request in requests:
        program, args = build_command(request.name, options)
        for _ in range(request.count):
            label = request.name if request.name is not None else f"worker {next_id}"
            specs.append(
                WorkerSpec(
                    id=next_id,
                    label=label,
                    program=program,
                    args=args,
                    queue=request.name,
                ),
            )
            next_id += 1
    return specs


@dataclass(frozen=True, slots=True)
class LabelLayout:
    """Column layout shared by every console prefix of one run."""

    id_width: int
    label_width: int

    @classmethod
    def for_specs(cls, specs: Sequence[WorkerSpec]) -> LabelLayout:
        label_width = max((len(spec.label) for spec in specs), default=0)
        id_width = max(MIN_ID_WIDTH, len(str(len(specs))))
        return cls(id_width=id_width, label_width=label_width)

    def prefix(self, spec: WorkerSpec) -> str:
        """Return e.g. ``[02] default `` (label right-padded, trailing space)."""

        return f"[{spec.id:0{self.id_width}d}] {spec.label:<{self.label_width}} "
