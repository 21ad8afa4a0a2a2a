import unittest

from models.notes_models import QuestionState, Section
from processors.section_registry import get_presentation
from processors.section_splitter import build_sections
from services.study_widgets import (
    ActionChecklist,
    ExpandableCards,
    Flashcards,
    MarkdownBlock,
    PreparationCard,
    QuizWidget,
    TakeawayList,
    build_widget,
    score_percent,
)
from tests.sample_notes import SAMPLE_NOTES
from utils.exceptions import ValidationError


def make_section(title, content):
    return Section(id="s", title=title, content=content, presentation=get_presentation(title))


def quiz_body(answers):
    blocks = []
    for i, answer in enumerate(answers, start=1):
        blocks.append(f"**Q{i}.** Question {i}?\n- A) one\n- B) two\n- C) three\n\n**Answer:** {answer}) why")
    return "\n\n".join(blocks)


class TestBuildWidget(unittest.TestCase):

    def test_sample_sections_map_to_widgets(self):
        kinds = {s.title: build_widget(s).kind for s in build_sections(SAMPLE_NOTES)}
        self.assertEqual(kinds["Session Overview"], "markdown")
        self.assertEqual(kinds["Key Themes Covered"], "expandable_cards")
        self.assertEqual(kinds["Qur'anic Verses Referenced"], "verse_cards")
        self.assertEqual(kinds["Key Arabic Vocabulary"], "flashcards")
        self.assertEqual(kinds["Hadith References"], "hadith_cards")
        self.assertEqual(kinds["Stories & Examples"], "expandable_cards")
        self.assertEqual(kinds["Connection to Previous Sessions"], "markdown")
        self.assertEqual(kinds["Reflections & Action Points"], "checklist")
        self.assertEqual(kinds["Mini Quiz"], "quiz")
        self.assertEqual(kinds["Key Takeaways"], "takeaways")
        self.assertEqual(kinds["Preparation for Next Session"], "preparation")

    def test_falls_back_to_raw_body(self):
        widget = build_widget(make_section("Key Arabic Vocabulary", "No new words today."))
        self.assertIsInstance(widget, MarkdownBlock)
        self.assertEqual(widget.to_dict(), {"kind": "markdown", "content": "No new words today."})

    def test_unknown_title_is_markdown(self):
        self.assertIsInstance(build_widget(make_section("Glossary", "- a\n- b")), MarkdownBlock)

    def test_markdown_rejects_actions(self):
        widget = build_widget(make_section("Glossary", "text"))
        with self.assertRaises(ValidationError):
            widget.apply("toggle", index=0)


class TestExpandableCards(unittest.TestCase):

    def setUp(self):
        self.widget = build_widget(make_section("Key Themes Covered", "### One\na\n\n### Two\nb\n\n### Three\nc"))

    def test_first_card_starts_expanded(self):
        self.assertIsInstance(self.widget, ExpandableCards)
        self.assertEqual(self.widget.expanded, {0})

    def test_toggle(self):
        self.widget.apply("toggle", index=0)
        self.widget.apply("toggle", index=2)
        self.assertEqual(self.widget.expanded, {2})
        cards = self.widget.to_dict()["cards"]
        self.assertEqual([c["expanded"] for c in cards], [False, False, True])

    def test_out_of_range(self):
        with self.assertRaises(ValidationError):
            self.widget.apply("toggle", index=3)
        with self.assertRaises(ValidationError):
            self.widget.apply("toggle")

    def test_stories_carry_emojis(self):
        widget = build_widget(make_section("Stories & Examples", "### A\nx\n\n### B\ny"))
        cards = widget.to_dict()["cards"]
        self.assertTrue(all("emoji" in c for c in cards))


class TestFlashcards(unittest.TestCase):

    def setUp(self):
        rows = "\n".join(f"| w{i} | t{i} | r{i} | m{i} |" for i in range(3))
        self.widget = build_widget(make_section("Key Arabic Vocabulary", rows))

    def test_toggle_all_from_partial(self):
        self.assertIsInstance(self.widget, Flashcards)
        self.widget.apply("toggle", index=1)
        self.widget.apply("toggle_all")
        self.assertEqual(self.widget.flipped, {0, 1, 2})
        self.assertEqual(self.widget.to_dict()["bulk_label"], "Hide all")

    def test_toggle_all_from_full(self):
        self.widget.apply("toggle_all")
        self.widget.apply("toggle_all")
        self.assertEqual(self.widget.flipped, set())
        self.assertEqual(self.widget.to_dict()["bulk_label"], "Reveal all")

    def test_single_flip(self):
        self.widget.apply("toggle", index=2)
        cards = self.widget.to_dict()["cards"]
        self.assertEqual([c["flipped"] for c in cards], [False, False, True])


class TestChecklist(unittest.TestCase):

    def test_progress(self):
        widget = build_widget(make_section("Reflections & Action Points",
                                           "1. **Pray**: on time\n2. **Give**: charity"))
        self.assertIsInstance(widget, ActionChecklist)
        widget.apply("toggle", index=1)
        data = widget.to_dict()
        self.assertEqual(data["progress"], "1/2 completed")
        self.assertEqual([i["checked"] for i in data["items"]], [False, True])
        with self.assertRaises(ValidationError):
            widget.apply("toggle_all")


class TestStaticWidgets(unittest.TestCase):

    def test_takeaways_numbered(self):
        widget = build_widget(make_section("Key Takeaways", "- Point one\n- Point two"))
        self.assertIsInstance(widget, TakeawayList)
        self.assertEqual(widget.to_dict()["items"],
                         [{"number": 1, "text": "Point one"}, {"number": 2, "text": "Point two"}])

    def test_preparation(self):
        widget = build_widget(make_section("Preparation for Next Session", "Review:\n1. Surah An-Nas"))
        self.assertIsInstance(widget, PreparationCard)
        self.assertEqual(widget.to_dict()["tasks"], ["Surah An-Nas"])


class TestQuizWidget(unittest.TestCase):

    def build(self, answers, callback=None):
        return build_widget(make_section("Mini Quiz", quiz_body(answers)), on_quiz_complete=callback)

    def test_scenario_wrong_answer_does_not_score(self):
        widget = build_widget(make_section(
            "Mini Quiz", "**Q1.** What is X?\n- A) foo\n- B) bar\n**Answer:** B) because"))
        widget.apply("select", index=0, letter="A")
        widget.apply("reveal", index=0)
        self.assertEqual(widget.score, 0)
        question = widget.to_dict()["questions"][0]
        self.assertFalse(question["correct"])
        self.assertEqual(question["answer"], "B")

    def test_state_progression(self):
        widget = self.build(["A", "B"])
        self.assertEqual(widget.state_of(0), QuestionState.UNANSWERED)
        widget.apply("select", index=0, letter="C")
        self.assertEqual(widget.state_of(0), QuestionState.SELECTED)
        widget.apply("select", index=0, letter="A")
        widget.apply("reveal", index=0)
        self.assertEqual(widget.state_of(0), QuestionState.REVEALED)
        widget.apply("select", index=0, letter="B")
        self.assertEqual(widget.selected[0], "A")
        self.assertEqual(widget.score, 1)

    def test_reveal_requires_selection(self):
        widget = self.build(["A"])
        with self.assertRaises(ValidationError):
            widget.apply("reveal", index=0)

    def test_unknown_letter(self):
        widget = self.build(["A"])
        with self.assertRaises(ValidationError):
            widget.apply("select", index=0, letter="D")

    def test_answer_hidden_until_revealed(self):
        widget = self.build(["A", "B"])
        widget.apply("select", index=0, letter="A")
        question = widget.to_dict()["questions"][0]
        self.assertNotIn("answer", question)
        self.assertEqual(question["selected"], "A")

    def test_completion_fires_once_with_rounded_percent(self):
        fired = []
        widget = self.build(["A"] * 8, callback=fired.append)
        widget.apply("select", index=0, letter="A")
        for i in range(1, 8):
            widget.apply("select", index=i, letter="B")
        for i in range(8):
            widget.apply("reveal", index=i)
        widget.apply("reveal", index=7)
        self.assertEqual(fired, [13])
        data = widget.to_dict()
        self.assertTrue(data["complete"])
        self.assertEqual(data["percent"], 13)
        self.assertEqual(data["verdict"], "Keep revising!")

    def test_perfect_score(self):
        fired = []
        widget = self.build(["A", "B", "C"], callback=fired.append)
        for i, letter in enumerate("ABC"):
            widget.apply("select", index=i, letter=letter)
            widget.apply("reveal", index=i)
        self.assertEqual(fired, [100])
        self.assertEqual(widget.verdict(), "Perfect score!")

    def test_reveal_order_does_not_matter(self):
        fired = []
        widget = self.build(["A", "A", "A"], callback=fired.append)
        for i in (2, 0, 1):
            widget.apply("select", index=i, letter="A" if i != 1 else "B")
            widget.apply("reveal", index=i)
        self.assertEqual(fired, [67])
        self.assertEqual(widget.verdict(), "Well done!")

    def test_unsupported_action(self):
        widget = self.build(["A"])
        self.assertIsInstance(widget, QuizWidget)
        with self.assertRaises(ValidationError):
            widget.apply("toggle", index=0)


class TestScorePercent(unittest.TestCase):

    def test_rounds_half_up(self):
        self.assertEqual(score_percent(1, 8), 13)
        self.assertEqual(score_percent(1, 2), 50)
        self.assertEqual(score_percent(1, 3), 33)
        self.assertEqual(score_percent(2, 3), 67)
        self.assertEqual(score_percent(3, 8), 38)

    def test_empty_quiz(self):
        self.assertEqual(score_percent(0, 0), 0)


if __name__ == "__main__":
    unittest.main()
