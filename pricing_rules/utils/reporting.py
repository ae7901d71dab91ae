from typing import Dict, List, Any, Sequence, Union
import pandas as pd
from datetime import datetime
import json

from ..core.models import EvaluationResult, EvaluationFailure

BatchOutcome = Union[EvaluationResult, EvaluationFailure]

FRAME_COLUMNS = [
    'index', 'status', 'product_id', 'category_id', 'quantity',
    'base_price', 'final_price', 'discount_amount', 'applied_rule_id',
    'considered_rules', 'warnings', 'error'
]


def results_to_frame(requests: Sequence[Any], outcomes: Sequence[BatchOutcome]) -> pd.DataFrame:
    """One row per batch slot, money columns as floats for analysis"""
    rows = []

    for index, (request, outcome) in enumerate(zip(requests, outcomes)):
        row = {
            'index': index,
            'product_id': getattr(request, 'product_id', None),
            'category_id': getattr(request, 'category_id', None),
            'quantity': getattr(request, 'quantity', None),
        }
        if isinstance(outcome, EvaluationFailure):
            row.update({
                'status': 'failed',
                'base_price': None,
                'final_price': None,
                'discount_amount': None,
                'applied_rule_id': None,
                'considered_rules': 0,
                'warnings': 0,
                'error': f"{outcome.error_type}: {outcome.message}"
            })
        else:
            row.update({
                'status': 'priced',
                'base_price': float(outcome.base_price),
                'final_price': float(outcome.final_price),
                'discount_amount': float(outcome.discount_amount),
                'applied_rule_id': outcome.applied_rule_id,
                'considered_rules': len(outcome.considered_rule_ids),
                'warnings': len(outcome.warnings),
                'error': None
            })
        rows.append(row)

    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


class BatchEvaluationReport:
    """Summary report for a bulk pricing preview"""

    def __init__(self, requests: Sequence[Any], outcomes: Sequence[BatchOutcome]):
        if len(requests) != len(outcomes):
            raise ValueError(f"Got {len(requests)} requests but {len(outcomes)} outcomes")
        self.report_timestamp = datetime.now()
        self.frame = results_to_frame(requests, outcomes)

    def generate_summary(self) -> Dict[str, Any]:
        """Slot counts, discount totals and rule usage"""
        df = self.frame
        priced = df[df['status'] == 'priced']
        total = len(df)

        summary = {
            'overview': {
                'total_requests': total,
                'priced': len(priced),
                'failed': total - len(priced),
                'failure_rate': ((total - len(priced)) / total * 100) if total > 0 else 0,
                'with_rule_applied': int(priced['applied_rule_id'].notna().sum()),
                'with_integrity_warnings': int((priced['warnings'] > 0).sum())
            },
            'totals': {
                'base_price': round(float(priced['base_price'].sum()), 2),
                'final_price': round(float(priced['final_price'].sum()), 2),
                'discount_amount': round(float(priced['discount_amount'].sum()), 2)
            },
            'rule_usage': {},
            'errors': {}
        }

        applied = priced.dropna(subset=['applied_rule_id'])
        if not applied.empty:
            usage = applied.groupby('applied_rule_id').agg(
                requests=('index', 'count'),
                total_discount=('discount_amount', 'sum')
            )
            summary['rule_usage'] = {
                rule_id: {
                    'requests': int(stats['requests']),
                    'total_discount': round(float(stats['total_discount']), 2)
                }
                for rule_id, stats in usage.iterrows()
            }

        failed = df[df['status'] == 'failed']
        if not failed.empty:
            summary['errors'] = {
                str(error): int(count)
                for error, count in failed['error'].value_counts().items()
            }

        return summary

    def export_report(self, format: str = 'json') -> str:
        """Export summary in specified format"""
        report = {
            'generated_at': self.report_timestamp.isoformat(),
            'summary': self.generate_summary()
        }
        if format == 'json':
            return json.dumps(report, indent=2, default=str)
        elif format == 'markdown':
            return self._generate_markdown_report(report)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _generate_markdown_report(self, report: Dict[str, Any]) -> str:
        summary = report['summary']
        overview = summary['overview']

        md_lines = [
            "# Batch Pricing Report",
            f"\nGenerated: {report['generated_at']}",
            "\n## Overview",
            f"\n- **Requests**: {overview['total_requests']}",
            f"- **Priced**: {overview['priced']}",
            f"- **Failed**: {overview['failed']} ({overview['failure_rate']:.1f}%)",
            f"- **Rule applied**: {overview['with_rule_applied']}",
            f"- **Total discount**: {summary['totals']['discount_amount']:.2f}",
        ]

        if summary['rule_usage']:
            md_lines.append("\n## Rule Usage")
            for rule_id, stats in summary['rule_usage'].items():
                md_lines.append(
                    f"- **{rule_id}**: {stats['requests']} requests, "
                    f"{stats['total_discount']:.2f} discounted"
                )

        if summary['errors']:
            md_lines.append("\n## Errors")
            for error, count in summary['errors'].items():
                md_lines.append(f"- {error} ({count})")

        return '\n'.join(md_lines)

    def to_records(self) -> List[Dict[str, Any]]:
        return self.frame.to_dict(orient='records')
