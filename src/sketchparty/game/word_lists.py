"""Bundled dictionary used when no word file is configured."""

from __future__ import annotations

DEFAULT_WORDS: tuple[str, ...] = (
    # Animals
    "CAT", "DOG", "ELEPHANT", "GIRAFFE", "PENGUIN", "OCTOPUS", "BUTTERFLY", "KANGAROO",
    "SNAIL", "TURTLE", "OWL", "DOLPHIN", "SPIDER", "CAMEL", "ZEBRA", "LOBSTER",
    "HEDGEHOG", "FLAMINGO", "SHARK", "BAT",
    # Objects
    "UMBRELLA", "LADDER", "SCISSORS", "CANDLE", "GUITAR", "TELESCOPE", "BACKPACK", "KEY",
    "LIGHTBULB", "HAMMER", "TOOTHBRUSH", "CLOCK", "BALLOON", "ANCHOR", "CROWN", "GLASSES",
    "PAINTBRUSH", "TROPHY", "KITE", "MAGNET",
    # Food
    "APPLE", "PIZZA", "BANANA", "CARROT", "CUPCAKE", "SANDWICH", "WATERMELON", "ICE CREAM",
    "PRETZEL", "CHEESE", "PINEAPPLE", "HOT DOG", "POPCORN", "MUSHROOM", "TACO", "DONUT",
    # Places
    "HOUSE", "CASTLE", "BEACH", "VOLCANO", "LIGHTHOUSE", "PYRAMID", "BRIDGE", "ISLAND",
    "DESERT", "WATERFALL", "IGLOO", "CAVE", "FARM", "SPACESHIP", "TENT",
    # Actions
    "SWIMMING", "SLEEPING", "DANCING", "FISHING", "JUGGLING", "SKIING", "SNEEZING", "CLIMBING",
    "PAINTING", "SURFING",
    # Nature
    "RAINBOW", "SNOWMAN", "TORNADO", "CACTUS", "SUNFLOWER", "MOON", "LIGHTNING", "TREE",
    "MOUNTAIN", "CLOUD",
    # Technology and vehicles
    "ROBOT", "ROCKET", "BICYCLE", "HELICOPTER", "SUBMARINE", "TRACTOR", "SKATEBOARD", "CAMERA",
    "HEADPHONES", "COMPUTER",
    # People and fiction
    "PIRATE", "WIZARD", "ASTRONAUT", "MERMAID", "DRAGON", "GHOST", "VAMPIRE", "NINJA",
    "SCARECROW", "KNIGHT",
)  # fmt: skip

FALLBACK_WORDS: tuple[str, ...] = ("APPLE", "HOUSE", "CAT", "DOG")
