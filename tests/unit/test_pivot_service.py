"""
Unit tests for pivot aggregation of quantity items.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from architrack.exceptions import EmptyQuantityItemsError, QuantityOverflowError
from architrack.services.pivot_service import (
    aggregate_items, generate_group_key, quantize_quantity, to_decimal,
    QUANTITY_MAX, QUANTITY_MIN
)


def make_item(custom_category=None, work_type=None, name=None, specification=None, unit=None, quantity='0'):
    return SimpleNamespace(
        custom_category=custom_category,
        work_type=work_type,
        name=name,
        specification=specification,
        unit=unit,
        quantity=Decimal(quantity) if isinstance(quantity, str) else quantity
    )


class TestGroupKey:
    """Tests for group key normalization."""

    def test_none_and_empty_string_are_the_same_key(self):
        a = make_item(custom_category=None, work_type='Concrete', name='Slab', unit='m3')
        b = make_item(custom_category='', work_type='Concrete', name='Slab', unit='m3')

        assert generate_group_key(a) == generate_group_key(b)
        assert generate_group_key(a) == ('', 'Concrete', 'Slab', '', 'm3')

    def test_unit_is_part_of_the_key(self):
        a = make_item(name='Slab', unit='m3')
        b = make_item(name='Slab', unit='m2')

        assert generate_group_key(a) != generate_group_key(b)

    def test_key_is_case_sensitive(self):
        assert generate_group_key(make_item(name='slab')) != generate_group_key(make_item(name='Slab'))


class TestAggregateItems:
    """Tests for aggregate_items."""

    def test_groups_and_sums(self):
        items = [
            make_item('Structure', 'Concrete', 'Footing', 'Fc24', 'm3', '12.50'),
            make_item('Structure', 'Concrete', 'Footing', 'Fc24', 'm3', '7.25'),
            make_item('Finish', 'Paint', 'Wall', 'EP', 'm2', '100.10'),
        ]

        result = aggregate_items(items)

        assert result.source_item_count == 3
        assert len(result.rows) == 2
        totals = {row.name: row.quantity for row in result.rows}
        assert totals == {'Footing': Decimal('19.75'), 'Wall': Decimal('100.10')}

    def test_null_and_blank_category_merge_into_one_row(self):
        items = [
            make_item(None, 'Formwork', 'Panel', None, 'm2', '30'),
            make_item('', 'Formwork', 'Panel', '', 'm2', '0.75'),
        ]

        result = aggregate_items(items)

        assert len(result.rows) == 1
        row = result.rows[0]
        assert row.custom_category is None
        assert row.specification is None
        assert row.quantity == Decimal('30.75')

    def test_row_count_and_total_match_input(self):
        items = [
            make_item('A', 'W1', f'N{index % 7}', None, 'm', f'{index}.{index % 100:02d}')
            for index in range(50)
        ]

        result = aggregate_items(items)

        distinct_keys = {generate_group_key(item) for item in items}
        assert len(result.rows) == len(distinct_keys)
        assert sum(row.quantity for row in result.rows) == sum(item.quantity for item in items)

    def test_float_inputs_are_summed_exactly(self):
        items = [make_item(name='X', quantity=0.1), make_item(name='X', quantity=0.2)]

        result = aggregate_items(items)

        assert result.rows[0].quantity == Decimal('0.30')

    def test_missing_quantity_counts_as_zero(self):
        items = [make_item(name='X', quantity=None), make_item(name='X', quantity='2')]

        assert aggregate_items(items).rows[0].quantity == Decimal('2.00')

    def test_empty_input_raises(self):
        with pytest.raises(EmptyQuantityItemsError) as exc_info:
            aggregate_items([], quantity_table_id=7)

        assert exc_info.value.quantity_table_id == 7
        assert exc_info.value.status_code == 400

    def test_generator_input(self):
        result = aggregate_items(make_item(name='X', quantity='1') for _ in range(3))

        assert result.source_item_count == 3
        assert result.rows[0].quantity == Decimal('3.00')


class TestOverflow:
    """Tests for the quantity range check."""

    def test_upper_bound_is_inclusive(self):
        result = aggregate_items([make_item(name='X', quantity='9999999.98'), make_item(name='X', quantity='0.01')])

        assert result.rows[0].quantity == QUANTITY_MAX

    def test_sum_above_upper_bound_raises(self):
        items = [make_item(name='X', quantity='9999999.99'), make_item(name='X', quantity='0.01')]

        with pytest.raises(QuantityOverflowError) as exc_info:
            aggregate_items(items)

        assert exc_info.value.actual_value == Decimal('10000000.00')
        assert exc_info.value.status_code == 422
        assert exc_info.value.details['maxAllowed'] == '9999999.99'

    def test_sum_below_lower_bound_raises(self):
        items = [make_item(name='X', quantity='-999999.99'), make_item(name='X', quantity='-0.01')]

        with pytest.raises(QuantityOverflowError):
            aggregate_items(items)

    def test_intermediate_excursion_aborts(self):
        """The final total would fit, but a running sum left the range on the way."""
        items = [
            make_item(name='X', quantity='9999999.99'),
            make_item(name='X', quantity='0.01'),
            make_item(name='X', quantity='-0.01'),
        ]

        with pytest.raises(QuantityOverflowError):
            aggregate_items(items)

    def test_other_groups_do_not_share_the_budget(self):
        items = [
            make_item(name='X', quantity='9999999.99'),
            make_item(name='Y', quantity='9999999.99'),
        ]

        result = aggregate_items(items)

        assert [row.quantity for row in result.rows] == [QUANTITY_MAX, QUANTITY_MAX]
        assert QUANTITY_MIN == Decimal('-999999.99')


class TestDefaultOrder:
    """Tests for the default row order."""

    def test_sorted_by_category_work_type_name_specification(self):
        items = [
            make_item('B', 'W', 'N', 'S', quantity='1'),
            make_item('A', 'Z', 'N', 'S', quantity='1'),
            make_item('A', 'W', 'M', 'S', quantity='1'),
            make_item('A', 'W', 'M', 'R', quantity='1'),
        ]

        rows = aggregate_items(items).rows

        assert [(r.custom_category, r.work_type, r.name, r.specification) for r in rows] == [
            ('A', 'W', 'M', 'R'),
            ('A', 'W', 'M', 'S'),
            ('A', 'Z', 'N', 'S'),
            ('B', 'W', 'N', 'S'),
        ]

    def test_empty_sorts_first(self):
        items = [make_item('A', name='N', quantity='1'), make_item(None, name='N', quantity='1')]

        rows = aggregate_items(items).rows

        assert [row.custom_category for row in rows] == [None, 'A']

    def test_uppercase_sorts_before_lowercase(self):
        items = [make_item(name='b', quantity='1'), make_item(name='B', quantity='1'), make_item(name='a', quantity='1')]

        assert [row.name for row in aggregate_items(items).rows] == ['B', 'a', 'b']

    def test_unit_ties_keep_first_seen_order(self):
        items = [make_item(name='N', unit='m3', quantity='1'), make_item(name='N', unit='m2', quantity='1')]

        assert [row.unit for row in aggregate_items(items).rows] == ['m3', 'm2']


def test_decimal_helpers():
    assert to_decimal(None) == Decimal('0')
    assert to_decimal('1.005') == Decimal('1.005')
    assert quantize_quantity(Decimal('1.005')) == Decimal('1.01')
    assert quantize_quantity(Decimal('-1.005')) == Decimal('-1.01')
