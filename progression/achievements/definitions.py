from progression.achievements.catalog import (
    AchievementCatalog,
    AchievementDefinition,
    AchievementType,
    CategoryLevelRequirement,
    Requirements,
)
from progression.utils.constants import Category


def _global_level(level: int, title: str, xp_reward: int) -> AchievementDefinition:
    return AchievementDefinition(
        id=f'global_level_{level}',
        title=title,
        description=f'Reach level {level} in your fitness journey',
        type=AchievementType.MILESTONE,
        requirements=Requirements(level=level),
        xp_reward=xp_reward,
        icon='award',
    )


def _total_xp(xp: int, title: str, xp_reward: int) -> AchievementDefinition:
    return AchievementDefinition(
        id=f'xp_{xp}',
        title=title,
        description=f'Accumulate {xp:,} XP in your fitness journey',
        type=AchievementType.MILESTONE,
        requirements=Requirements(total_xp=xp),
        xp_reward=xp_reward,
        icon='zap',
    )


def _category_level(
    category: Category, title: str, noun: str, icon: str, badge_color: str
) -> AchievementDefinition:
    return AchievementDefinition(
        id=f'{category.value}_level_5',
        title=title,
        description=f'Reach level 5 in {noun} exercises',
        type=AchievementType.STRENGTH,
        requirements=Requirements(
            category_level=CategoryLevelRequirement(category.value, 5)
        ),
        xp_reward=50,
        icon=icon,
        badge_color=badge_color,
    )


def _streak(
    prefix: str,
    days: int,
    title: str,
    description: str,
    xp_reward: int,
    *,
    nutrition: bool,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=f'{prefix}_{days}',
        title=title,
        description=description,
        type=AchievementType.NUTRITION if nutrition else AchievementType.CONSISTENCY,
        requirements=Requirements(streak_count=days),
        xp_reward=xp_reward,
        icon='utensils' if nutrition else 'calendar',
    )


def _workouts(count: int, title: str, xp_reward: int) -> AchievementDefinition:
    return AchievementDefinition(
        id=f'workouts_{count}',
        title=title,
        description=f'Complete {count} workouts',
        type=AchievementType.CONSISTENCY,
        requirements=Requirements(completed_workouts=count),
        xp_reward=xp_reward,
        icon='list-checks',
    )


# Order matters: rewards are granted in this order within one scan
ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    _global_level(2, 'First Steps', 50),
    _global_level(5, 'Fitness Enthusiast', 50),
    _global_level(10, 'Fitness Devotee', 100),
    _global_level(25, 'Fitness Master', 250),
    _total_xp(1000, 'Dedicated Athlete', 100),
    _total_xp(5000, 'Fitness Veteran', 250),
    _category_level(Category.CORE, 'Core Strength', 'core', 'disc', 'bg-blue-500'),
    _category_level(Category.PUSH, 'Push Power', 'pushing', 'arrow-up', 'bg-red-500'),
    _category_level(
        Category.PULL, 'Pull Proficiency', 'pulling', 'arrow-down', 'bg-green-500'
    ),
    _category_level(Category.LEGS, 'Leg Legend', 'leg', 'activity', 'bg-purple-500'),
    _streak(
        'streak', 7, 'Week Warrior', 'Maintain a 7-day workout streak', 70,
        nutrition=False,
    ),
    _streak(
        'streak', 30, 'Monthly Devotion', 'Maintain a 30-day workout streak', 300,
        nutrition=False,
    ),
    _workouts(10, 'Workout Beginner', 50),
    _workouts(50, 'Workout Regular', 100),
    _workouts(100, 'Workout Expert', 200),
    _streak(
        'nutrition_streak', 7, 'Nutrition Aware',
        'Track your nutrition for 7 consecutive days', 70, nutrition=True,
    ),
    _streak(
        'nutrition_streak', 30, 'Nutrition Master',
        'Track your nutrition for 30 consecutive days', 150, nutrition=True,
    ),
)

# Built once at import; construction validates every definition
catalog = AchievementCatalog(ACHIEVEMENTS)
