"""Observability endpoints for promotion counters and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from perks_api.api.dependencies.session import require_admin_context
from perks_api.observability.promotions import get_promotion_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/promotions",
    dependencies=[Depends(require_admin_context)],
    summary="Promotion and ledger counters snapshot",
)
async def get_promotion_snapshot() -> dict[str, object]:
    return get_promotion_store().snapshot().as_dict()


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} gauge",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    summary="Prometheus-formatted promotion metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_promotion_store().snapshot()
    lines: list[str] = []

    for outcome, count in sorted(snapshot.claims.items()):
        lines.extend(
            _format_metric(
                "perks_coupon_claims_total",
                "Coupon claim attempts by outcome",
                count,
                {"outcome": outcome},
            )
        )
    for key, count in sorted(snapshot.redemptions.items()):
        kind, _, outcome = key.partition(":")
        lines.extend(
            _format_metric(
                "perks_redemptions_total",
                "Redemptions by instance kind and outcome",
                count,
                {"kind": kind, "outcome": outcome},
            )
        )
    for transaction, count in sorted(snapshot.conflicts.items()):
        lines.extend(
            _format_metric(
                "perks_transaction_conflicts_total",
                "Optimistic transaction conflicts that triggered a retry",
                count,
                {"transaction": transaction},
            )
        )
    for metric, value in sorted(snapshot.distribution.items()):
        lines.extend(
            _format_metric(
                f"perks_distribution_{metric}",
                f"Campaign distribution {metric.replace('_', ' ')}",
                value,
            )
        )

    body = "\n".join(lines) + "\n" if lines else ""
    return PlainTextResponse(content=body, media_type="text/plain; version=0.0.4")
