from typing import Dict, List, Optional

from models import NovelInfo

Messages = List[Dict[str, str]]

CHAPTER_WRITER_PROMPT = (
    "You are a novelist who writes engaging, coherent chapters. "
    "Keep the style and narrative consistent with the story so far."
)
EDITOR_PROMPT = "You are a literary editor who improves novel prose."
CONTINUATION_PROMPT = "You are a creative writer who continues stories naturally and engagingly."
IDEAS_PROMPT = "You are a creative consultant who helps authors develop their stories."


def _genres(novel: NovelInfo) -> str:
    return ", ".join(novel.genres) if novel.genres else "Not specified"


def _messages(system_prompt: str, user_message: str) -> Messages:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_message.strip()},
    ]


def build_generate_messages(
    novel: NovelInfo,
    chapter_number: str,
    chapter_title: str = "",
    user_prompt: str = "",
) -> Messages:
    lines = [
        "NOVEL INFORMATION:",
        f"- Title: {novel.title}",
        f"- Synopsis: {novel.description or 'No synopsis'}",
        f"- Genres: {_genres(novel)}",
        "",
        "CHAPTER TO WRITE:",
        f"- Number: {chapter_number}",
        f"- Title: {chapter_title or 'Untitled'}",
        "",
    ]
    if user_prompt and user_prompt.strip():
        lines += [f"SPECIFIC INSTRUCTIONS: {user_prompt.strip()}", ""]
    lines += [
        "REQUIREMENTS:",
        "1. Write between 1500 and 3000 words",
        "2. Stay coherent with the story",
        "3. Give the chapter a beginning, a development and a conclusion",
        "4. Leave the reader curious about the next chapter",
        "5. Use vivid descriptions and natural dialogue",
        "",
        "Write ONLY the chapter content, without meta-commentary.",
    ]
    return _messages(CHAPTER_WRITER_PROMPT, "\n".join(lines))


def build_improve_messages(content: str, improvement_prompt: str = "") -> Messages:
    instructions = improvement_prompt.strip() if improvement_prompt else ""
    user_message = (
        f"CURRENT CHAPTER CONTENT:\n\n{content}\n\n"
        f"IMPROVEMENT INSTRUCTIONS:\n{instructions or 'Polish the prose and pacing.'}\n\n"
        "Improve the text following the instructions. Keep the essence of the story "
        "but raise the quality of the writing."
    )
    return _messages(EDITOR_PROMPT, user_message)


def build_continue_messages(
    novel: NovelInfo,
    previous_content: str,
    user_instructions: str = "",
) -> Messages:
    parts = [f"NOVEL: {novel.title}", f"PREVIOUS TEXT:\n{previous_content}"]
    if user_instructions and user_instructions.strip():
        parts.append(f"INSTRUCTIONS: {user_instructions.strip()}")
    parts.append(
        "Continue the story from this point in a natural and engaging way. "
        "Write at least 1000 words."
    )
    return _messages(CONTINUATION_PROMPT, "\n\n".join(parts))


def build_ideas_messages(novel: NovelInfo, recent_limit: Optional[int] = 5) -> Messages:
    recent = novel.recent_chapters(recent_limit or 5)
    if recent:
        history = "PREVIOUS CHAPTERS:\n" + "\n".join(
            f"Ch {c.chapter_number}: {c.title}" for c in recent
        )
    else:
        history = "FIRST CHAPTER"
    user_message = (
        f"NOVEL: {novel.title}\n"
        f"SYNOPSIS: {novel.description or 'No synopsis'}\n"
        f"GENRES: {_genres(novel)}\n\n"
        f"{history}\n\n"
        "Suggest 5 ideas for the next chapter. For each idea give a suggestive title, "
        "a short synopsis (2-3 lines) and the key elements that will be developed.\n\n"
        "Format: list the ideas numbered 1 to 5, one numbered item per idea, "
        "without nested numbering."
    )
    return _messages(IDEAS_PROMPT, user_message)
