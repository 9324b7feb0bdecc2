"""Zone registry behavior."""

from airplayhub.lib.zones import Zone, ZoneRegistry


def make_registry(changes):
    registry = ZoneRegistry("[AirPlay Hub]", on_change=lambda: changes.append(1))
    registry.load([
        {"name": "Kitchen", "host": "10.0.0.5", "port": 7000, "volume": 80},
        {"name": "kitchen", "host": "10.0.0.6", "port": 7000},
        {"host": "10.0.0.7"},
        {"name": "Office", "host": "10.0.0.8", "port": "5000", "volume": 250, "enabled": True},
    ])
    return registry


def test_load_skips_duplicates_and_malformed():
    registry = make_registry([])
    assert [z.name for z in registry] == ["Kitchen", "Office"]
    office = registry.find_by_name("office")
    assert office.port == 5000
    assert office.volume == 100
    assert office.enabled is True


def test_find_is_case_insensitive():
    registry = make_registry([])
    assert registry.find_by_name("KITCHEN").name == "Kitchen"
    assert registry.find_by_name("Garage") is None


def test_discovery_creates_new_zone_with_defaults():
    changes = []
    registry = make_registry(changes)
    result = registry.upsert_from_discovery("Garage", "10.0.0.9", 7000)
    assert result.created is True
    assert result.zone.volume == 0
    assert result.zone.enabled is False
    assert result.zone.hidden is False
    assert len(registry) == 3
    assert len(changes) == 1


def test_discovery_refreshes_address_only_when_changed():
    changes = []
    registry = make_registry(changes)

    result = registry.upsert_from_discovery("kitchen", "10.0.0.5", 7000)
    assert result.created is False
    assert result.changed is False
    assert changes == []

    result = registry.upsert_from_discovery("kitchen", "10.0.0.55", 7001)
    assert result.changed is True
    zone = registry.find_by_name("Kitchen")
    assert (zone.host, zone.port) == ("10.0.0.55", 7001)
    assert zone.name == "Kitchen"
    assert zone.volume == 80
    assert len(changes) == 1


def test_discovery_ignores_self():
    changes = []
    registry = make_registry(changes)
    assert registry.upsert_from_discovery("[airplay hub]", "10.0.0.1", 7000) is None
    assert len(registry) == 2
    assert changes == []


def test_mutations_return_none_for_unknown_zone():
    registry = make_registry([])
    assert registry.set_enabled("Garage", True) is None
    assert registry.set_volume("Garage", 10) is None
    assert registry.set_hidden("Garage", True) is None


def test_set_volume_clamps():
    registry = make_registry([])
    assert registry.set_volume("Kitchen", 140).volume == 100
    assert registry.set_volume("Kitchen", -1).volume == 0


def test_hidden_zones_not_listed():
    registry = make_registry([])
    registry.set_hidden("Office", True)
    assert [z.name for z in registry.list_visible()] == ["Kitchen"]
    assert len(registry.to_list()) == 2


def test_disable_all_writes_once():
    changes = []
    registry = make_registry(changes)
    registry.disable_all()
    assert all(not z.enabled for z in registry)
    assert len(changes) == 1


def test_zone_round_trips_through_dict():
    zone = Zone("Den", "10.0.0.3", 7000, volume=20, enabled=True, hidden=True)
    assert Zone.from_dict(zone.to_dict()).to_dict() == zone.to_dict()
