from app.matching.domain.normalizer import clean_tags, profile_to_embedding_text


def test_full_profile_renders_in_fixed_order():
    profile = {
        "offering": ["Design reviews", "Figma"],
        "looking_for": ["Mentors"],
        "current_work": "A budgeting app",
        "bio": "Product designer in Lisbon.",
    }
    assert profile_to_embedding_text(profile) == (
        "Product designer in Lisbon.\n"
        "Currently working on: A budgeting app\n"
        "Looking for: Mentors\n"
        "Can offer: Design reviews, Figma"
    )


def test_blank_fields_and_tags_are_dropped():
    profile = {"bio": "   ", "current_work": "", "looking_for": ["", "  "], "offering": [" Go ", ""]}
    assert profile_to_embedding_text(profile) == "Can offer: Go"


def test_empty_profile_renders_empty_string():
    assert profile_to_embedding_text({}) == ""
    assert profile_to_embedding_text(None) == ""
    assert profile_to_embedding_text({"linkedin_url": "https://linkedin.com/in/x", "pronouns": "they"}) == ""


def test_clean_tags_trims_and_deduplicates_preserving_order():
    assert clean_tags([" b", "a", "b ", "", None, "c"]) == ["b", "a", "c"]
    assert clean_tags("not-a-list") == []
