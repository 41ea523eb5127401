"""
Terminal responder: the always-available last resort after every vendor failed.

Reads the conversation with a fixed keyword table (topics, emotional tone,
knowledge level) and answers with an educational template. The only source of
variation is the template variant, picked by a ``random.Random`` that callers
may seed.
"""
import re
import random
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..models.api_models import ChatMessage, ProviderResult, Usage

logger = logging.getLogger("Gawin.Pipeline.TerminalResponder")

FALLBACK_MODEL = "fallback-template"
FALLBACK_PROVIDER = "terminal-responder"

TOPIC_PATTERNS = [
    (re.compile(r"\b(math|calculus|algebra|geometry|trigonometry|statistics)\b", re.I), "mathematics"),
    (re.compile(r"\b(physics|chemistry|biology|science|lab|experiment)\b", re.I), "science"),
    (re.compile(r"\b(code|coding|programming|javascript|python|react|api|database|algorithm)\b", re.I), "programming"),
    (re.compile(r"\b(write|writing|essay|grammar|literature|english|composition)\b", re.I), "writing"),
    (re.compile(r"\b(history|geography|social|politics|economics|culture)\b", re.I), "social_studies"),
    (re.compile(r"\b(art|design|creative|music|visual|aesthetic)\b", re.I), "creative_arts"),
]

# checked in order; the first match wins for a message, later messages override
TONE_PATTERNS = [
    (re.compile(r"\b(frustrated|stuck|confused|don't understand|help)\b", re.I), "frustrated"),
    (re.compile(r"\b(interesting|curious|wonder|explore|learn more)\b", re.I), "curious"),
    (re.compile(r"\b(unclear|confusing|not sure|don't get)\b", re.I), "confused"),
    (re.compile(r"\b(understand|got it|makes sense|clear now)\b", re.I), "confident"),
]

COMPLEX_TERMS = re.compile(
    r"\b(algorithm|implementation|optimization|abstraction|polymorphism|derivative|integral|synthesis|analysis)\b", re.I
)
BASIC_TERMS = re.compile(r"\b(what is|how do|basic|simple|beginner|start|first time)\b", re.I)

MATH_SCIENCE = re.compile(r"\b(math|calculus|algebra|geometry|physics|chemistry|biology|science)\b", re.I)
PROGRAMMING = re.compile(r"\b(code|coding|programming|javascript|python|react|computer|software)\b", re.I)
LANGUAGE = re.compile(r"\b(write|writing|essay|grammar|literature|english|language)\b", re.I)
STUDY = re.compile(r"\b(study|learn|homework|assignment|test|exam|help)\b", re.I)
GREETING = re.compile(r"^(hello[\s\W]*|hi[\s\W]*|hey[\s\W]*|good\s+(morning|afternoon|evening)[\s\W]*|kumusta[\s\W]*)$", re.I)

TONE_TEMPLATES = {
    "frustrated": (
        [
            "I understand this can be challenging. Let's break it down step by step.",
            "Don't worry - learning involves struggles, and that's completely normal!",
            "I'm here to help you work through this. Let's approach it from a different angle.",
            "Every expert was once a beginner. Let's tackle this together.",
        ],
        "Building on our previous discussion about {topics}, what specific part is giving you trouble?",
        "What specific aspect would you like help with?",
    ),
    "curious": (
        [
            "I love your curiosity! Let's explore this fascinating topic together.",
            "That's an excellent question that opens up many interesting possibilities!",
            "Your curiosity is the foundation of great learning. Let's dive deeper!",
            "Great question! This connects to so many interesting concepts.",
        ],
        "Since we've been discussing {topics}, how do you think this connects to what we've covered?",
        "What aspects of this topic intrigue you most?",
    ),
    "confused": (
        [
            "I can help clarify this for you. Let's start with the fundamentals.",
            "Let me explain this more clearly. Understanding builds step by step.",
            "Good question! Let me break this down into simpler parts.",
            "I see the confusion. Let's approach this systematically.",
        ],
        "Thinking back to our discussion on {topics}, which part needs more explanation?",
        "What specific aspect would you like me to clarify?",
    ),
    "confident": (
        [
            "Great! I can see you're grasping these concepts well. Let's explore more advanced applications.",
            "Excellent understanding! Ready to dive into some more complex aspects?",
            "You're demonstrating solid comprehension. Let's challenge ourselves further.",
            "Perfect! Your grasp of this topic opens doors to more sophisticated concepts.",
        ],
        "Given your understanding of {topics}, what advanced concepts interest you?",
        "What challenging aspects would you like to explore?",
    ),
}

TECHNICAL_TROUBLE_RESPONSE = (
    "I apologize that you're experiencing technical difficulties! I'm here to help with your learning. "
    "Even though some systems might be temporarily unavailable, I can still assist you with explanations, "
    "study guidance, and educational support. What specific topic would you like to explore together?"
)

LEVEL_INTROS = {
    "beginner": "Let's build on the basics we've covered",
    "intermediate": "Based on your growing understanding",
    "advanced": "Given your strong grasp of the concepts",
}

SUBJECT_TEMPLATES = {
    "mathematics and science": [
        "I love helping with math and science! These subjects are all about understanding patterns and relationships in our world.",
        "Math and science can be challenging, but breaking problems down into smaller steps often makes them much clearer.",
        "Science and mathematics are interconnected - math helps us describe and predict scientific phenomena!",
    ],
    "programming and technology": [
        "Programming is like learning a new language to communicate with computers - it's very logical and creative!",
        "Technology is constantly evolving, but the fundamental problem-solving skills remain the same across all programming languages.",
        "Coding is all about breaking down complex problems into smaller, manageable pieces.",
    ],
    "language and writing": [
        "Writing is a powerful way to organize and express your thoughts clearly and persuasively.",
        "Language skills improve with practice - reading widely and writing regularly are key to improvement.",
        "Good writing starts with understanding your audience and purpose.",
    ],
}

STUDY_TIPS = [
    "Effective studying involves active engagement with the material rather than just reading passively.",
    "Breaking study sessions into focused chunks with short breaks can improve retention significantly.",
    "Teaching or explaining concepts to someone else is one of the best ways to solidify your understanding.",
    "Creating connections between new information and what you already know helps with long-term memory.",
]

DEFAULT_OPENERS = [
    "I'm here to support your learning journey! Even when technical systems have hiccups, education continues.",
    "Learning is an active process, and I'm glad you're engaging with challenging material.",
    "Your curiosity and willingness to ask questions is the foundation of great learning.",
    "Understanding comes from connecting new ideas with what you already know.",
]


@dataclass
class ConversationContext:
    topics: List[str] = field(default_factory=list)
    emotional_tone: str = "neutral"
    knowledge_level: str = "intermediate"
    has_history: bool = False


def analyze_conversation(messages: Sequence[ChatMessage]) -> ConversationContext:
    context = ConversationContext(has_history=len(messages) > 1)
    for msg in messages:
        if msg.role != "user":
            continue
        content = msg.text()

        for pattern, topic in TOPIC_PATTERNS:
            if pattern.search(content) and topic not in context.topics:
                context.topics.append(topic)

        for pattern, tone in TONE_PATTERNS:
            if pattern.search(content):
                context.emotional_tone = tone
                break

        if len(COMPLEX_TERMS.findall(content)) > 2:
            context.knowledge_level = "advanced"
        elif BASIC_TERMS.search(content):
            context.knowledge_level = "beginner"
    return context


class TerminalResponder:
    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def _pick(self, options: Sequence[str]) -> str:
        return options[self._rng.randrange(len(options))]

    def compose(self, user_text: str, messages: Sequence[ChatMessage]) -> str:
        lowered = user_text.lower().strip()
        ctx = analyze_conversation(messages)
        topics = ", ".join(ctx.topics)
        with_topics = ctx.has_history and bool(ctx.topics)

        if ctx.emotional_tone in TONE_TEMPLATES:
            openers, topic_tail, plain_tail = TONE_TEMPLATES[ctx.emotional_tone]
            opener = self._pick(openers)
            tail = topic_tail.format(topics=topics) if with_topics else plain_tail
            return f"{opener} {tail}"

        if "not working" in lowered or "error" in lowered or "broken" in lowered:
            return TECHNICAL_TROUBLE_RESPONSE

        if ctx.topics:
            intro = LEVEL_INTROS.get(ctx.knowledge_level, LEVEL_INTROS["intermediate"])
            return f"{intro} in {topics}, how can I help you take the next step in your learning journey?"

        for pattern, subject in (
            (MATH_SCIENCE, "mathematics and science"),
            (PROGRAMMING, "programming and technology"),
            (LANGUAGE, "language and writing"),
        ):
            if pattern.search(lowered):
                return self._subject_response(subject, ctx)

        if STUDY.search(lowered):
            tip = self._pick(STUDY_TIPS)
            if with_topics:
                return f"{tip} How can I help you apply this to {topics} that we've been discussing?"
            if ctx.has_history:
                return f"{tip} How can I help you apply this to the topics we've been discussing?"
            return f"{tip} What subject or specific assignment are you working on? I'd be happy to help you develop a study strategy!"

        if GREETING.match(lowered):
            if ctx.has_history:
                return "I see you're back! What's on your mind today?"
            return "What brings you here? I'm curious about what you'd like to explore."

        if "?" in lowered:
            return self._question_response(ctx, topics, with_topics)

        opener = self._pick(DEFAULT_OPENERS)
        if with_topics:
            return f"{opener} Let's continue building on our discussion of {topics} - what aspect interests you most?"
        if ctx.has_history:
            return f"{opener} Let's continue building on our discussion - what aspect interests you most?"
        return f"{opener} What specific topic, subject, or question would you like to explore together?"

    def _subject_response(self, subject: str, ctx: ConversationContext) -> str:
        base = self._pick(SUBJECT_TEMPLATES[subject])
        if ctx.knowledge_level == "beginner":
            base += " Let's start with the fundamentals and build up your understanding step by step."
        elif ctx.knowledge_level == "advanced":
            base += " I can see you have a strong foundation - let's explore some advanced concepts."
        if ctx.has_history:
            return f"{base} Based on our conversation so far, what specific aspect would you like to dive deeper into?"
        return f"{base} What particular question or topic in {subject} can I help you with?"

    @staticmethod
    def _question_response(ctx: ConversationContext, topics: str, with_topics: bool) -> str:
        if ctx.knowledge_level == "advanced":
            opener = "That's a sophisticated question that shows deep thinking!"
        elif ctx.knowledge_level == "beginner":
            opener = "Great question! Asking questions is how we learn."
        else:
            opener = "That's a thoughtful question!"
        if with_topics:
            return f"{opener} Building on our discussion of {topics}, let me help you work through this step by step."
        if ctx.has_history:
            return (
                f"{opener} I can see you're thinking deeply about this topic. Let me help you work through this "
                "step by step, building on what we've already covered."
            )
        return f"{opener} I appreciate your curiosity. The best way to approach this is to break it down systematically."

    def respond(self, validated, aggregate_failure: str = "", request_id: str = "-") -> ProviderResult:
        user_text = validated.last_user_text
        content = self.compose(user_text, validated.messages)
        logger.info(f"RID-{request_id}: answering from fallback templates after: {aggregate_failure or 'no attempts'}")
        # character counts, not tokens
        usage = Usage(len(user_text), len(content), len(user_text) + len(content))
        return ProviderResult(
            success=True,
            content=content,
            model_used=FALLBACK_MODEL,
            usage=usage,
            error_reason=aggregate_failure or None,
            provider=FALLBACK_PROVIDER,
        )
