"""Status report: configured entries compared with the live store."""
from dataclasses import dataclass, field
from typing import Any, Optional

from ..values import format_value
from .schema import Comparison, EffectiveKey, MatchState


@dataclass
class StatusItem:
    """One configured key and how it compares."""
    effective: EffectiveKey
    desired: Any
    current: Optional[Any]
    state: MatchState

    @classmethod
    def from_comparison(cls, comparison: Comparison) -> "StatusItem":
        return cls(
            effective=comparison.effective,
            desired=comparison.entry.desired,
            current=comparison.current,
            state=MatchState.MATCHED if comparison.matched else MatchState.DIVERGED,
        )

    def describe(self) -> str:
        if self.state == MatchState.MATCHED:
            return f"{self.effective.key}: {format_value(self.desired)} (matched)"

        current = "Not set" if self.current is None else format_value(self.current)
        return (
            f"{self.effective.key}: should be {format_value(self.desired)} "
            f"(now: {current})"
        )


@dataclass
class DomainStatus:
    """Items sharing one effective domain."""
    domain: str
    items: list[StatusItem] = field(default_factory=list)


@dataclass
class StatusReport:
    """Grouped comparison of every configured entry."""
    domains: list[DomainStatus] = field(default_factory=list)

    @classmethod
    def from_comparisons(cls, comparisons: list[Comparison]) -> "StatusReport":
        """Group comparisons by effective domain, in first-seen order."""
        grouped: dict[str, DomainStatus] = {}
        for comparison in comparisons:
            domain = comparison.effective.domain
            if domain not in grouped:
                grouped[domain] = DomainStatus(domain=domain)
            grouped[domain].items.append(StatusItem.from_comparison(comparison))
        return cls(domains=list(grouped.values()))

    @property
    def items(self) -> list[StatusItem]:
        return [item for group in self.domains for item in group.items]

    @property
    def diverged_count(self) -> int:
        return sum(1 for item in self.items if item.state == MatchState.DIVERGED)

    @property
    def in_sync(self) -> bool:
        return self.diverged_count == 0

    def summary(self) -> str:
        """Human-readable report."""
        if not self.domains:
            return "No preferences configured"

        lines = []
        for group in self.domains:
            lines.append(group.domain)
            for item in group.items:
                marker = "  " if item.state == MatchState.MATCHED else "! "
                lines.append(f"  {marker}{item.describe()}")
            lines.append("")

        if self.in_sync:
            lines.append("All preferences match the configuration.")
        else:
            lines.append(f"{self.diverged_count} preference(s) diverged.")
        return "\n".join(lines)
