"""Tests for the finance CSV export."""

from gcadmin.queries import export_finance_csv


class TestFinanceExport:
    """Tests for export_finance_csv()."""

    async def test_layout(self, store):
        """Test both sections, their headers and quoting."""
        await store.add("incomes", {
            "id": "i1", "date": "2024-12-01", "amount": 7.99,
            "memo": "Initial payment", "assignmentId": "a1",
        })
        await store.add("expenses", {
            "id": "e1", "date": "2024-12-01", "amount": 14.99,
            "memo": 'Spotify "Family"', "serviceId": "s1",
        })

        text = await export_finance_csv(store)

        assert text == (
            "# Incomes\n"
            "date,amount,memo,assignmentId\n"
            '"2024-12-01","7.99","Initial payment","a1"\n'
            "\n"
            "# Expenses\n"
            "date,amount,memo,serviceId,subscriptionId\n"
            '"2024-12-01","14.99","Spotify ""Family""","s1",""'
        )

    async def test_empty_store(self, store):
        """Test headers are written even without rows."""
        text = await export_finance_csv(store)
        assert text == (
            "# Incomes\ndate,amount,memo,assignmentId\n\n"
            "# Expenses\ndate,amount,memo,serviceId,subscriptionId"
        )
