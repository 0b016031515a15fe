"""
Unit Tests - Synthetic Shop Data
"""
from datetime import datetime

import polars as pl
import pytest

from shop_analytics.data.generators import ShopDataGenerator
from shop_analytics.database.models import JobStatus

NOW = datetime(2025, 3, 14, 12, 0)


@pytest.fixture
def dataset():
    return ShopDataGenerator(seed=7, now=NOW).generate_all(
        n_customers=40, n_technicians=4, n_bays=3, n_jobs=300, history_days=120
    )


class TestShopDataGenerator:
    """Tests for the demo data generator"""

    def test_tables_and_sizes(self, dataset):
        assert list(dataset) == ShopDataGenerator.TABLES
        assert len(dataset["customers"]) == 40
        assert len(dataset["technicians"]) == 4
        assert len(dataset["service_bays"]) == 3
        assert len(dataset["service_jobs"]) == 300

    def test_same_seed_is_reproducible(self, dataset):
        again = ShopDataGenerator(seed=7, now=NOW).generate_all(
            n_customers=40, n_technicians=4, n_bays=3, n_jobs=300, history_days=120
        )
        assert again["service_jobs"] == dataset["service_jobs"]
        assert again["customers"] == dataset["customers"]

    def test_jobs_reference_existing_rows(self, dataset):
        customer_ids = {c["id"] for c in dataset["customers"]}
        item_ids = {i["id"] for i in dataset["inventory_items"]}
        job_ids = {j["id"] for j in dataset["service_jobs"]}

        assert all(job["customer_id"] in customer_ids for job in dataset["service_jobs"])
        assert all(part["item_id"] in item_ids for part in dataset["job_parts"])
        assert all(part["job_id"] in job_ids for part in dataset["job_parts"])

    def test_job_timeline_is_consistent(self, dataset):
        for job in dataset["service_jobs"]:
            assert job["created_at"] <= NOW
            if job["status"] == JobStatus.COMPLETED.value:
                assert job["started_at"] <= job["completed_at"] <= NOW
            if job["status"] == JobStatus.PENDING.value:
                assert job["started_at"] is None and job["technician_id"] is None

    def test_inventory_levels(self, dataset):
        items = dataset["inventory_items"]
        assert all(item["quantity"] >= 0 and item["min_quantity"] >= 5 for item in items)
        assert len({item["sku"] for item in items}) == len(items)

    def test_save_writes_csv(self, dataset, tmp_path):
        paths = ShopDataGenerator.save(dataset, tmp_path)

        assert {p.name for p in paths} == {f"{name}.csv" for name in ShopDataGenerator.TABLES}
        assert pl.read_csv(tmp_path / "customers.csv").height == 40
