import pytest

from bookati.models.tenant import Customer
from bookati.services.customer_resolution import CustomerResolver, normalize_phone, phones_match


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("+351 912 345 678", "351912345678"),
        ("00351-912-345-678", "351912345678"),
        ("(912) 345.678", "912345678"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_phones_match_on_trailing_digits():
    assert phones_match("+351 912 345 678", "912345678")
    assert phones_match("00351912345678", "+351 912-345-678")
    assert not phones_match("+351 912 345 678", "+351 912 345 679")


def test_short_numbers_must_match_exactly():
    assert phones_match("112", "112")
    assert not phones_match("112", "0112")
    assert not phones_match("", "")


def test_resolve_is_scoped_to_tenant(db, tenant, customer):
    resolver = CustomerResolver(db)

    assert resolver.resolve(tenant.id, customer.id).id == customer.id
    assert resolver.resolve("01ARZ3NDEKTSV4RRFFQ69G5FAV", customer.id) is None
    assert resolver.resolve(tenant.id, None) is None


def test_suggest_by_phone(db, tenant, customer):
    db.add(Customer(tenant_id=tenant.id, name="Other", phone="+351 933 000 111"))
    db.add(Customer(tenant_id=tenant.id, name="No phone"))
    db.commit()

    suggestions = CustomerResolver(db).suggest_by_phone(tenant.id, "912 345 678")

    assert [c.id for c in suggestions] == [customer.id]
    assert CustomerResolver(db).suggest_by_phone(tenant.id, "---") == []
