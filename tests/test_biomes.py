from treasure_maps.biomes import BiomeClassifier, classify_biome
from treasure_maps.config import Settings
from treasure_maps.models import BiomeCategory


def test_classifier_precedence_examples() -> None:
    assert classify_biome("minecraft:snowy_taiga") == BiomeCategory.SNOWY
    assert classify_biome("minecraft:jungle_hills") == BiomeCategory.FOREST
    assert classify_biome("minecraft:frozen_river") == BiomeCategory.WATER
    assert classify_biome("minecraft:nether_wastes") == BiomeCategory.OTHER


def test_snowy_wins_over_forest_keywords() -> None:
    for biome in ("minecraft:snowy_taiga", "custom:taiga_snowy_edge", "SNOWY_OLD_GROWTH_TAIGA"):
        assert classify_biome(biome) == BiomeCategory.SNOWY


def test_classifier_is_case_insensitive_and_total() -> None:
    assert classify_biome("MINECRAFT:WARM_OCEAN") == BiomeCategory.WATER
    assert classify_biome("minecraft:sunflower_plains") == BiomeCategory.PLAINS
    assert classify_biome("minecraft:cherry_grove") == BiomeCategory.FOREST
    assert classify_biome("") == BiomeCategory.OTHER


def test_default_classifier_matches_function() -> None:
    classifier = BiomeClassifier()
    for biome in ("minecraft:ocean", "minecraft:ice_spikes", "minecraft:meadow", "minecraft:deep_dark"):
        assert classifier(biome) == classify_biome(biome)


def test_water_overrides_replace_keywords_and_add_exact_ids() -> None:
    classifier = BiomeClassifier(water_keywords=["lagoon"], water_exact=["mangrove_swamp", "mod:flooded_cave"])

    assert classifier("mod:blue_lagoon") == BiomeCategory.WATER
    assert classifier("minecraft:mangrove_swamp") == BiomeCategory.WATER
    assert classifier("mod:flooded_cave") == BiomeCategory.WATER
    # default water keywords no longer apply once overridden
    assert classifier("minecraft:river") == BiomeCategory.OTHER
    assert classifier("minecraft:frozen_ocean") == BiomeCategory.SNOWY


def test_classifier_from_settings_ignores_blank_entries() -> None:
    settings = Settings(water_biome_keywords=["  "], water_biome_exact=["Minecraft:Dripstone_Caves"])
    classifier = BiomeClassifier.from_settings(settings)

    assert classifier.water_keywords == ("ocean", "river", "swamp", "beach")
    assert classifier("minecraft:dripstone_caves") == BiomeCategory.WATER
