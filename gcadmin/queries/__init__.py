"""Read-only queries over the store: dashboard KPIs and finance export."""

from gcadmin.queries.finance_export import export_finance_csv
from gcadmin.queries.kpi import Kpis, calc_kpis, is_overdue

__all__ = ["Kpis", "calc_kpis", "export_finance_csv", "is_overdue"]
