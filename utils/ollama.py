import json
import logging
import re
import subprocess
from typing import Any, Dict, List, Optional

from config import load_config

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def call_llm(prompt: str, config: Dict[str, Any] = None) -> Optional[str]:
    """Call local Ollama model with prompt, return response or None when disabled or on error."""
    if config is None:
        config = load_config()
    ollama_cfg = config.get('ollama', {})
    if not ollama_cfg.get('enabled', False):
        return None
    model = ollama_cfg.get('model', 'llama3.2')
    timeout = ollama_cfg.get('timeout', 20)
    cmd = ['ollama', 'run', model]
    try:
        result = subprocess.run(
            cmd,
            input=prompt,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
            encoding='utf-8'
        )
        return result.stdout.strip()
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning("Ollama call failed: %s. Falling back to local generation.", e)
        return None


def parse_json_response(text: Optional[str]) -> Optional[Any]:
    """Pull the first JSON object or array out of a model reply."""
    if not text:
        return None
    cleaned = _FENCE_RE.sub("", text.strip())
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if end < start:
        return None
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError:
        logger.warning("Discarding unparseable model reply: %.80s", text)
        return None


def generate_bridges(term: str, translation: str, config: Dict[str, Any] = None) -> Optional[Dict[str, str]]:
    prompt = f"""Create short memory bridges for the Spanish word "{term}" ({translation}).
A bridge links the Spanish word to a similar sounding or looking word in another language.

Respond with JSON only: {{"hindi": "...", "dutch": "...", "english": "..."}}
Leave a value empty when there is no good bridge."""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, dict):
        return None
    bridges = {key: str(data.get(key) or "").strip() for key in ("hindi", "dutch", "english")}
    if not any(bridges.values()):
        return None
    return {key: value or None for key, value in bridges.items()}


def generate_example(term: str, translation: str, config: Dict[str, Any] = None) -> Optional[str]:
    prompt = f"""Write one short, simple Spanish sentence using the word "{term}" ({translation}).
Respond with the sentence only."""
    response = call_llm(prompt, config)
    if not response:
        return None
    sentence = response.strip().strip('"').splitlines()[0].strip()
    return sentence or None


def generate_mcq(term: str, translation: str, config: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    prompt = f"""Create a multiple-choice question for the Spanish word "{term}" meaning "{translation}".

Respond with JSON only:
{{"question": "...", "options": ["...", "...", "...", "..."], "correct_index": 0, "explanation": "..."}}
Exactly four options, one of them "{translation}"."""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, dict):
        return None
    options = data.get("options")
    correct = data.get("correct_index")
    if not isinstance(options, list) or len(options) != 4 or not isinstance(correct, int) or not 0 <= correct < 4:
        return None
    return {
        "question": str(data.get("question") or f"What does '{term}' mean?"),
        "options": [str(option) for option in options],
        "correct_index": correct,
        "explanation": str(data.get("explanation") or ""),
    }


def generate_fill_blank(term: str, translation: str, config: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    prompt = f"""Write a short Spanish sentence that uses "{term}" ({translation}), with the word replaced by ____.

Respond with JSON only: {{"sentence": "... ____ ...", "answer": "{term}", "hint": "..."}}"""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, dict):
        return None
    sentence = str(data.get("sentence") or "")
    if "____" not in sentence:
        return None
    return {
        "sentence": sentence,
        "answer": str(data.get("answer") or term),
        "hint": str(data.get("hint") or translation),
    }


def generate_sentence_build(term: str, translation: str, config: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    prompt = f"""Write a short Spanish sentence (4 to 8 words) that uses "{term}" ({translation}).

Respond with JSON only: {{"sentence": "...", "translation": "..."}}"""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, dict):
        return None
    sentence = str(data.get("sentence") or "").strip()
    if len(sentence.split()) < 2:
        return None
    return {"sentence": sentence, "translation": str(data.get("translation") or "")}


def translate_lines(spanish_lines: List[str], config: Dict[str, Any] = None) -> Optional[List[str]]:
    """English gloss per lyric line; result always matches the input length."""
    if not spanish_lines:
        return []
    numbered = "\n".join(spanish_lines)
    prompt = f"""Translate each line of these Spanish song lyrics into natural English.

Respond with a JSON array of strings, one translation per line, in the same order.

{numbered}"""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, list):
        return None
    translations = [str(item) for item in data][:len(spanish_lines)]
    translations.extend([""] * (len(spanish_lines) - len(translations)))
    return translations


def generate_grammar(
    term: str, translation: str, example: Optional[str] = None, config: Dict[str, Any] = None
) -> Optional[Dict[str, Any]]:
    """The most relevant grammar concept for a word, as a rule with examples."""
    prompt = f"""Explain the most important Spanish grammar concept for this word
(for example verb conjugation, gender agreement, tense or mood).

Word: "{term}"
Translation: "{translation}"
Example: "{example or ''}"

Respond with JSON only:
{{"rule_key": "present_tense_ar", "title": "Present Tense: -AR Verbs",
"explanation": "...", "examples": [{{"spanish": "...", "english": "..."}}], "difficulty": 1}}
Keep the explanation under 150 words and give 2 or 3 examples."""
    data = parse_json_response(call_llm(prompt, config))
    if not isinstance(data, dict):
        return None
    rule_key = re.sub(r"[^a-z0-9]+", "_", str(data.get("rule_key") or "").lower()).strip("_")
    title = str(data.get("title") or "").strip()
    if not rule_key or not title:
        return None
    examples = [
        {"spanish": str(item.get("spanish")), "english": str(item.get("english") or "")}
        for item in data.get("examples") or []
        if isinstance(item, dict) and item.get("spanish")
    ]
    try:
        difficulty = min(5, max(1, int(data.get("difficulty") or 1)))
    except (TypeError, ValueError):
        difficulty = 1
    return {
        "rule_key": rule_key,
        "title": title,
        "explanation": str(data.get("explanation") or "").strip(),
        "examples": examples,
        "difficulty": difficulty,
    }
