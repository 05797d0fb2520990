"""Chat assistant grounded in the subject's aggregate statistics.

Gemini is tried first, then OpenAI, each only when its API key is
configured.  Any provider failure is logged and the next option is tried;
the canned responder always produces an answer.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple

import requests

from . import settings

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
MAX_OUTPUT_TOKENS = 1500
TEMPERATURE = 0.7

Stats = Optional[Dict[str, Any]]


def _has_sessions(stats: Stats) -> bool:
    return bool(stats) and stats.get("total_sessions", 0) > 0


def build_context(posture_stats: Stats, gait_stats: Stats) -> str:
    """System prompt describing the subject's posture and gait statistics."""
    lines = [
        "You are an expert biomechanics and movement science assistant specializing in "
        "posture analysis, gait assessment, ergonomics, and movement optimization. You "
        "have access to the user's personal biomechanical data.",
        "",
        "Posture Analysis Data:",
    ]
    if _has_sessions(posture_stats):
        trend = "Available for analysis" if posture_stats.get("weekly_trend") else "No recent data"
        improvement = posture_stats.get("improvement_rate")
        lines += [
            f"- Total posture sessions recorded: {posture_stats['total_sessions']}",
            f"- Good posture percentage: {posture_stats['good_posture_percentage']}%",
            f"- Average forward head angle: {posture_stats['average_forward_head']}° (normal: <8°)",
            f"- Average posture score: {posture_stats['average_score']}/100",
            f"- Improvement rate: {'undefined' if improvement is None else f'{improvement}%'}",
            f"- Recent weekly trend: {trend}",
        ]
    else:
        lines += ["- No posture sessions recorded yet", "- User is new to posture monitoring"]

    lines += ["", "Gait Analysis Data:"]
    if _has_sessions(gait_stats):
        trend = "Available for analysis" if gait_stats.get("weekly_trend") else "No recent data"
        lines += [
            f"- Total gait sessions recorded: {gait_stats['total_sessions']}",
            f"- Average gait symmetry: {gait_stats['average_symmetry']}% (ideal: >85%)",
            f"- Average cadence: {gait_stats['average_cadence']} steps/min (normal: 120-160)",
            f"- Normal gait percentage: {gait_stats['normal_gait_percentage']}%",
            f"- Recent weekly trend: {trend}",
        ]
    else:
        lines += ["- No gait sessions recorded yet", "- User is new to gait monitoring"]

    lines += [
        "",
        "Instructions:",
        "Provide expert, evidence-based advice tailored to this user's biomechanical "
        "profile. Reference their actual measurements, suggest progressive and realistic "
        "improvement strategies, and include safety considerations.",
    ]
    return "\n".join(lines)


def ask_gemini(context: str, message: str) -> Optional[str]:
    if not settings.GEMINI_API_KEY:
        return None
    try:
        response = requests.post(
            GEMINI_URL.format(model=settings.GEMINI_MODEL),
            params={"key": settings.GEMINI_API_KEY},
            json={
                "contents": [{"parts": [{"text": f"{context}\n\nUser's Question: {message}"}]}],
                "generationConfig": {
                    "maxOutputTokens": MAX_OUTPUT_TOKENS,
                    "temperature": TEMPERATURE,
                },
            },
            timeout=settings.CHAT_TIMEOUT_S,
        )
        if response.status_code != 200:
            logger.warning("Gemini API error %s: %s", response.status_code, response.text[:200])
            return None
        data = response.json()
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except requests.exceptions.RequestException as e:
        logger.warning("Gemini API request failed: %s", e)
    except (KeyError, IndexError, ValueError) as e:
        logger.warning("Unexpected Gemini API response: %s", e)
    return None


def ask_openai(context: str, message: str) -> Optional[str]:
    if not settings.OPENAI_API_KEY:
        return None
    try:
        response = requests.post(
            OPENAI_URL,
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
            json={
                "model": settings.OPENAI_MODEL,
                "messages": [
                    {"role": "system", "content": context},
                    {"role": "user", "content": message},
                ],
                "max_tokens": MAX_OUTPUT_TOKENS,
                "temperature": TEMPERATURE,
            },
            timeout=settings.CHAT_TIMEOUT_S,
        )
        if response.status_code != 200:
            logger.warning("OpenAI API error %s", response.status_code)
            return None
        return response.json()["choices"][0]["message"]["content"]
    except requests.exceptions.RequestException as e:
        logger.warning("OpenAI API request failed: %s", e)
    except (KeyError, IndexError, ValueError) as e:
        logger.warning("Unexpected OpenAI API response: %s", e)
    return None


def _mentions(message: str, *words: str) -> bool:
    return any(word in message for word in words)


def fallback_response(message: str, posture_stats: Stats, gait_stats: Stats,
                      today: Optional[date] = None) -> str:
    """Keyword-driven expert answer used when no provider is reachable."""
    text = message.lower()

    if _mentions(text, "date", "time", "today"):
        today = today or date.today()
        return (
            f"Today is {today.strftime('%A, %B %d, %Y')}.\n\n"
            "I can help with posture analysis, gait assessment, exercise prescription, "
            "ergonomic workspace setup and movement pattern analysis."
        )

    if _mentions(text, "hello", "hi", "hey"):
        lines = ["Hello! I'm your biomechanics assistant.", ""]
        if _has_sessions(posture_stats):
            lines.append(
                f"• {posture_stats['total_sessions']} posture sessions analyzed, "
                f"current score {posture_stats['average_score']}/100"
            )
        else:
            lines.append("• No posture data yet - let's start analyzing!")
        if _has_sessions(gait_stats):
            lines.append(
                f"• {gait_stats['total_sessions']} gait sessions recorded, "
                f"symmetry {gait_stats['average_symmetry']}%"
            )
        else:
            lines.append("• No gait data yet - ready to begin tracking!")
        lines += ["", "What would you like to know about your movement and posture today?"]
        return "\n".join(lines)

    if _mentions(text, "posture", "forward head", "sitting", "wrong position", "back"):
        lines = []
        if _has_sessions(posture_stats):
            improvement = posture_stats.get("improvement_rate")
            lines += [
                "Your posture profile:",
                f"• Sessions analyzed: {posture_stats['total_sessions']}",
                f"• Posture score: {posture_stats['average_score']}/100",
                f"• Forward head angle: {posture_stats['average_forward_head']}° (ideal: <8°)",
                f"• Improvement trend: {f'+{improvement}%' if improvement and improvement > 0 else 'Stable'}",
                "",
            ]
        lines += [
            "Evidence-based solutions:",
            "• Ergonomic setup: monitor at eye level, lumbar support, feet flat",
            "• Movement breaks: 30-second posture resets every 30 minutes",
            "• Targeted exercises: chin tucks, wall angels, thoracic extensions",
            "• Stretching: chest muscles, anterior neck, hip flexors",
        ]
        return "\n".join(lines)

    if _mentions(text, "gait", "walking", "symmetry", "balance"):
        lines = []
        if _has_sessions(gait_stats):
            lines += [
                "Your gait profile:",
                f"• Gait sessions: {gait_stats['total_sessions']}",
                f"• Symmetry score: {gait_stats['average_symmetry']}% (ideal: >85%)",
                f"• Cadence: {gait_stats['average_cadence']} steps/min (optimal: 120-160)",
                f"• Normal gait percentage: {gait_stats['normal_gait_percentage']}%",
                "",
            ]
        lines += [
            "Gait optimization strategy:",
            "• Symmetry training: single-leg balance exercises, weight shifting drills",
            "• Cadence: metronome walking and rhythm training",
            "• Strength: hip abductors, calf raises, ankle mobility",
        ]
        return "\n".join(lines)

    if _mentions(text, "exercise", "strengthen", "workout"):
        return (
            "For posture: wall angels (2x15), bird dogs (2x10 each side), thoracic "
            "extensions (2x10).\n"
            "For gait: single-leg stands (3x30s each leg), calf raises (2x15), hip "
            "abductor work (2x12 each side).\n"
            "Progress gradually over 2-4 weeks and stop if anything hurts."
        )

    if _mentions(text, "ergonomic", "workspace", "desk"):
        return (
            "Optimal workspace: top of the screen at eye level, elbows at 90°, lumbar "
            "support with feet flat on the floor, and the mouse close to the keyboard. "
            "Stand and move every 30 minutes."
        )

    if _mentions(text, "pain", "ache", "discomfort"):
        return (
            "Persistent pain needs professional medical evaluation. Neck pain often "
            "relates to forward head posture and lower back pain to a weak core or poor "
            "sitting habits. Seek help for pain lasting more than a few days, sharp pain, "
            "or numbness and tingling."
        )

    if _mentions(text, "improve", "better", "tips"):
        return (
            "Improvement plan:\n"
            "• Track progress: record sessions regularly and watch your posture score "
            "and gait symmetry trends\n"
            "• Daily habits: morning posture check, movement breaks every 30 minutes, "
            "evening mobility work, weekly review of your data\n"
            "• Progressive approach: start with awareness and small corrections, then "
            "focus on one area at a time\n"
            "Consistency beats perfection."
        )

    return (
        "I can help with posture analysis, gait assessment, exercise prescription, "
        "ergonomic workspace setup and pain prevention. Try asking \"How can I improve "
        "my posture?\" or \"What causes gait asymmetry?\""
    )


def answer(message: str, posture_stats: Stats, gait_stats: Stats) -> Tuple[str, str]:
    """Return (reply, source) where source names the provider that answered."""
    context = build_context(posture_stats, gait_stats)

    reply = ask_gemini(context, message)
    if reply:
        return reply, "gemini"

    reply = ask_openai(context, message)
    if reply:
        return reply, "openai"

    logger.info("No AI provider answered, using canned biomechanics responses")
    return fallback_response(message, posture_stats, gait_stats), "fallback"
