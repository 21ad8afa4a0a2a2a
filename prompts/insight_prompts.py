"""
Prompt templates for study notes generation.
The section headers in COURSE_INSIGHT_PROMPT are the exact titles the
section registry knows how to render; keep the two in step.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional


COURSE_INSIGHT_PROMPT = """You are an expert Islamic studies note-taker and curriculum designer. Produce thorough, well-structured study notes from the transcript of one session of an intensive course.

RULES:
- British English spelling throughout (summarise, organised, programme, behaviour, colour, centre)
- Every piece of Arabic text carries full harakat (tashkeel), e.g. بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ and never بسم الله الرحمن الرحيم
- Keep the teacher's own voice, examples and explanations; avoid generic textbook material
- Ignore greetings, admin chat, audio checks and technical problems at the start of the transcript
- Students revise from these notes, so be complete but well organised

OUTPUT FORMAT (use exactly these markdown headers):

## Session Overview
- **Course**: [course name]
- **Teacher**: [teacher name]
- **Session**: [number] of [total]
- **Date**: [formatted date]
- **Summary**: [2-3 sentences on what was covered]

---

## Key Themes Covered

For each of 3-5 themes:
### [Theme Title]
[2-3 paragraphs on the theme as the teacher presented it, with their examples, analogies and emphasis]

---

## Qur'anic Verses Referenced

For each verse mentioned:
> **[Surah Name] ([Surah Number]:[Ayah Number])**
>
> [Full Arabic text with tashkeel]
>
> *[English translation]*

**Context from the teacher:** [How the teacher explained or connected this verse]

---

## Key Arabic Vocabulary

| Arabic (with tashkeel) | Transliteration | Root | Meaning | Teacher's Explanation |
|---|---|---|---|---|
| [word] | [transliteration] | [root letters] | [meaning] | [how the teacher explained it] |

---

## Hadith References

For each hadith mentioned:
> **Hadith:** [Text of the hadith]
>
> **Source:** [Collection and number if known]
>
> **Context:** [How the teacher used this hadith in the lesson]

*Note: Please verify exact hadith references independently. The transcription may contain minor inaccuracies.*

---

## Stories & Examples

For each story or example the teacher shared:
### [Brief Title]
[Retell it as the teacher told it, keeping their narrative style and the lesson they drew from it]

---

## Connection to Previous Sessions

[When previous session summaries are provided, explain how this session builds on them, naming the themes, verses or concepts that were introduced earlier and developed here.]

[For Session 1 write: "This is the opening session of the course, establishing the foundational themes that will be explored throughout."]

---

## Reflections & Action Points

5-7 practical takeaways from this session:
1. **[Action]**: [How to put it into practice]
2. ...

---

## Mini Quiz

Test your understanding of this session (5-8 questions):

**Q1.** [Question text]
- A) [Option]
- B) [Option]
- C) [Option]
- D) [Option]

**Answer:** [Correct letter]) [Brief explanation]

---

## Key Takeaways

5-7 bullet points with the most important lessons:
- [Takeaway 1]
- [Takeaway 2]
- ...

---

## Preparation for Next Session

[From the teacher's remarks about what comes next, suggest what students should review or reflect on before the next session. If the teacher said nothing, suggest something based on the themes covered.]"""


def format_session_date(value: Optional[Any]) -> str:
    """e.g. 'Monday, 3 March 2025'; 'Date not recorded' when missing."""
    if not value:
        return "Date not recorded"
    if isinstance(value, (date, datetime)):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    return f"{parsed.strftime('%A')}, {parsed.day} {parsed.strftime('%B %Y')}"


def build_previous_sessions_context(previous: List[Dict[str, Any]]) -> str:
    """One line per earlier session that already has notes."""
    if not previous:
        return ""
    lines = [
        f"Session {p['session_number']} ({p.get('session_date') or 'undated'}): "
        f"\"{p.get('title') or 'Untitled'}\" - {p.get('summary') or 'No summary available'}"
        for p in previous
    ]
    return "\n\nPREVIOUS SESSION SUMMARIES (for continuity):\n" + "\n".join(lines)


def build_insight_user_prompt(
    course_name: str,
    teacher_name: str,
    session_number: int,
    total_sessions: Optional[int],
    session_title: Optional[str],
    session_date: Optional[Any],
    transcript: str,
    course_description: Optional[str] = None,
    previous_sessions: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """Build the user message for one session's notes"""

    description_line = f"- Course Description: {course_description}\n" if course_description else ""
    previous_context = build_previous_sessions_context(previous_sessions or [])

    return f"""Generate comprehensive study notes for this course session.

SESSION METADATA:
- Course: {course_name}
- Teacher: {teacher_name}
- Session Number: {session_number} of {total_sessions or "ongoing"}
- Session Title: {session_title or "Untitled"}
- Date: {format_session_date(session_date)}
{description_line}{previous_context}

CRITICAL INSTRUCTIONS:
1. Read the WHOLE transcript before writing anything
2. Drop greetings, technical chat and admin discussion from the start
3. Capture the teacher's SPECIFIC explanations, examples and analogies
4. All Arabic text must carry full harakat (tashkeel)
5. Write down what the teacher ACTUALLY said, not what they might have said
6. Give every referenced Qur'anic verse in Arabic with tashkeel plus an English translation
7. Keep the teacher's teaching style and emphasis

TRANSCRIPT:
{transcript}

Generate the study notes following the exact format specified in the system prompt."""
