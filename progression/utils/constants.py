from enum import Enum

XP_PER_LEVEL = 1000

# Bot-side reward policy for logged workout sets
XP_PER_SET = 10

ACHIEVEMENT_SOURCE = 'achievement'
WORKOUT_SOURCE = 'workout'


class Category(str, Enum):
    CORE = 'core'
    PUSH = 'push'
    PULL = 'pull'
    LEGS = 'legs'

    def __str__(self) -> str:
        return self.value


CATEGORIES: tuple[Category, ...] = tuple(Category)

CATEGORY_RANKS = [
    (20000, 'Grandmaster'),
    (10000, 'Master'),
    (6000, 'Expert'),
    (3000, 'Advanced'),
    (1500, 'Intermediate'),
    (500, 'Beginner'),
    (0, 'Novice'),
]
