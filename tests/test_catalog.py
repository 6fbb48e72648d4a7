from datetime import datetime, timezone

import pytest

from progression.achievements.catalog import (
    AchievementCatalog,
    AchievementDefinition,
    AchievementType,
    CategoryLevelRequirement,
    DefinitionSource,
    Requirements,
    validate_definition,
)
from progression.achievements.definitions import ACHIEVEMENTS, catalog
from progression.exceptions import CatalogIntegrityError
from tests.conftest import definition


class _Source:
    def __init__(self, definitions):
        self._definitions = list(definitions)
        self.lookups: list[str] = []

    def definitions(self):
        return list(self._definitions)

    def lookup(self, title):
        self.lookups.append(title)
        return next((d for d in self._definitions if d.title == title), None)


def test_default_catalog_is_ordered_and_unique():
    ids = [d.id for d in catalog.all()]
    assert len(ids) == len(set(ids)) == len(ACHIEVEMENTS) == 17
    assert ids[:2] == ['global_level_2', 'global_level_5']
    assert catalog.get('legs_level_5').requirements.category_level == (
        CategoryLevelRequirement('legs', 5)
    )
    assert catalog.by_title('Week Warrior').id == 'streak_7'
    assert 'xp_1000' in catalog
    assert 'nope' not in catalog
    assert catalog.get('nope') is None


def test_duplicate_ids_rejected():
    with pytest.raises(CatalogIntegrityError):
        AchievementCatalog([definition('a', level=2), definition('a', level=3)])


def test_requirements_must_be_present():
    with pytest.raises(CatalogIntegrityError):
        validate_definition(definition('empty'))


@pytest.mark.parametrize('threshold', [0, -3])
def test_thresholds_must_be_positive(threshold):
    with pytest.raises(CatalogIntegrityError):
        validate_definition(definition('bad', level=threshold))


def test_negative_reward_rejected():
    with pytest.raises(CatalogIntegrityError):
        validate_definition(definition('bad', xp_reward=-1, level=2))


def test_unknown_category_rejected_at_construction():
    bad = definition(
        'arms_level_5', category_level=CategoryLevelRequirement('arms', 5)
    )
    with pytest.raises(CatalogIntegrityError) as exc:
        AchievementCatalog([bad])
    assert exc.value.details['category'] == 'arms'


def test_dynamic_tier_never_shadows_static_entries():
    static = definition('lvl_2', title='First Steps', level=2)
    fresh = definition('xp_50', total_xp=50)
    same_id = definition('lvl_2', title='Other', level=9)
    same_title = definition('other', title='First Steps', level=9)
    source = _Source([same_id, fresh, same_title])

    cat = AchievementCatalog([static], dynamic=source)
    assert isinstance(source, DefinitionSource)
    assert [d.id for d in cat.all()] == ['lvl_2', 'xp_50']
    assert cat.get('lvl_2') is static
    assert cat.get('xp_50') == fresh
    assert len(cat) == 2


def test_by_title_falls_through_to_dynamic_lookup():
    fresh = definition('xp_50', title='Fifty', total_xp=50)
    source = _Source([fresh])
    cat = AchievementCatalog([definition('lvl_2', level=2)]).with_source(source)

    assert cat.by_title('Lvl 2').id == 'lvl_2'
    assert source.lookups == []
    assert cat.by_title('Fifty') == fresh
    assert cat.by_title('Missing') is None
    assert source.lookups == ['Fifty', 'Missing']


def test_with_source_keeps_static_tier():
    cat = AchievementCatalog([definition('lvl_2', level=2)])
    assert cat.with_source(None).static == cat.static


def test_definition_from_row():
    row = {
        'id': 'deadlift_master',
        'title': 'Deadlift Master',
        'description': 'Reach mastery 3 on deadlifts',
        'type': 'strength',
        'icon': 'dumbbell',
        'badge_color': None,
        'requirements': {
            'exercise_mastery': {'exercise_id': 'deadlift', 'level': 3},
            'level': 4,
        },
        'xp_reward': 120,
        'is_active': True,
        'created_at': datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    parsed = AchievementDefinition.from_row(row)
    assert parsed.type is AchievementType.STRENGTH
    assert parsed.requirements.level == 4
    assert parsed.requirements.exercise_mastery.exercise_id == 'deadlift'
    assert parsed.requirements.to_dict() == row['requirements']
    assert validate_definition(parsed) is parsed


def test_definition_from_malformed_row():
    with pytest.raises(CatalogIntegrityError):
        AchievementDefinition.from_row({'id': 'x', 'title': 'X', 'type': 'nope'})


def test_requirements_round_trip_through_dict():
    req = Requirements(
        total_xp=5000, category_level=CategoryLevelRequirement('pull', 5)
    )
    assert Requirements.from_dict(req.to_dict()) == req
    assert set(req.populated()) == {'total_xp', 'category_level'}
