import json
import random
import re
import time
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import anthropic
import openai
from google import generativeai as genai

from futuresync.config import (
    OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY, AI_TIMEOUT_SECONDS,
    AI_MODEL, AI_MAX_TOKENS, AI_TEMPERATURE, AI_CACHE_SECONDS, AI_USER_REQUESTS_PER_MINUTE,
    AI_MODEL_BY_PLAN, DEFAULT_FALLBACK_ORDER,
)

logger = logging.getLogger(__name__)

CLAUDE_MODEL = "claude-3-haiku-20240307"
GEMINI_MODEL = "gemini-1.5-flash"

ACTION_TEMPLATES = {
    "health": [
        {"description": "Take a 15-minute walk outside", "estimatedTime": 15},
        {"description": "Do 10 minutes of stretching", "estimatedTime": 10},
        {"description": "Drink 3 glasses of water", "estimatedTime": 5},
        {"description": "Practice 5 minutes of deep breathing", "estimatedTime": 5},
    ],
    "career": [
        {"description": "Read one article in your field", "estimatedTime": 20},
        {"description": "Update your LinkedIn profile", "estimatedTime": 15},
        {"description": "Practice a new skill for 20 minutes", "estimatedTime": 20},
        {"description": "Network with one professional contact", "estimatedTime": 10},
    ],
    "relationships": [
        {"description": "Call a friend or family member", "estimatedTime": 15},
        {"description": "Write a thoughtful message to someone", "estimatedTime": 10},
        {"description": "Practice active listening in conversations", "estimatedTime": 5},
        {"description": "Plan a quality time activity", "estimatedTime": 20},
    ],
    "personal-growth": [
        {"description": "Journal for 10 minutes", "estimatedTime": 10},
        {"description": "Read for 20 minutes", "estimatedTime": 20},
        {"description": "Practice gratitude - list 3 things", "estimatedTime": 5},
        {"description": "Learn something new for 15 minutes", "estimatedTime": 15},
    ],
}

MOTIVATIONAL_MESSAGES = [
    "Amazing progress toward becoming {vision}! Day {day} complete!",
    "You're building the habits that will make you {vision}! Day {day} done!",
    "Every day brings you closer to {vision}! Day {day} conquered!",
    "Your future self as {vision} is proud! Day {day} finished!",
]

@dataclass
class AIResponse:
    success: bool
    data: Any = None
    error: Optional[str] = None
    cached: bool = False
    model: str = AI_MODEL

class ResponseParser:
    @staticmethod
    def extract_json_array(content: str) -> List[Dict]:
        match = re.search(r"\[[\s\S]*\]", content)
        parsed = json.loads(match.group(0) if match else content)
        if not isinstance(parsed, list):
            raise ValueError("Expected a JSON array")
        return parsed

    @staticmethod
    def extract_json_object(content: str) -> Dict:
        match = re.search(r"\{[\s\S]*\}", content)
        parsed = json.loads(match.group(0) if match else content)
        if not isinstance(parsed, dict):
            raise ValueError("Expected a JSON object")
        return parsed

def clamp_minutes(value: Any, low: int = 5, high: int = 60) -> int:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        minutes = low
    return min(max(minutes, low), high)

def fallback_actions(visions: List[Dict], day: Optional[str] = None) -> List[Dict]:
    """Template actions for the two most important visions"""
    day = day or date.today().isoformat()
    prioritized = sorted(
        visions,
        key=lambda v: (v.get("priority", 1), v.get("timeAllocation", 30)),
        reverse=True
    )[:2]

    actions = []
    for vision in prioritized:
        templates = ACTION_TEMPLATES.get(vision.get("category"), ACTION_TEMPLATES["personal-growth"])
        template = random.choice(templates)
        actions.append({
            "visionId": vision.get("id"),
            "description": template["description"],
            "estimatedTime": template["estimatedTime"],
            "date": day,
            "aiGenerated": False,
        })
    return actions

def fallback_insights(user_stats: Dict) -> Dict:
    return {
        "recommendations": [
            {
                "title": "Optimize your timing",
                "description": "Based on your completion pattern, you seem most productive during certain hours. "
                               "Try scheduling important actions during your peak times.",
                "confidence": 0.7,
                "type": "timing",
            }
        ],
        "insights": [
            {
                "metric": "Completion Rate",
                "value": f"{user_stats.get('completionRate', 0)}%",
                "trend": "stable",
                "interpretation": "Your consistency is building strong habits",
            }
        ],
    }

def fallback_vision_analysis(description: str, category: str) -> Dict:
    return {
        "themes": [category, "personal growth"],
        "keyGoals": ["Build consistent habits", "Make measurable progress"],
        "suggestedActions": ["Take small daily steps", "Track your progress", "Stay consistent"],
        "timeComplexity": "medium",
        "feasibilityScore": 0.8,
        "improvements": ["Be more specific about outcomes", "Set measurable milestones"],
    }

class AIService:
    def __init__(self):
        self.openai_client = openai.OpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY and "dummy" not in OPENAI_API_KEY else None
        if not self.openai_client: logger.warning("OpenAI API key not available or is a dummy key.")
        self.claude_client = anthropic.Anthropic(api_key=ANTHROPIC_API_KEY) if ANTHROPIC_API_KEY and "dummy" not in ANTHROPIC_API_KEY else None
        if not self.claude_client: logger.warning("Anthropic API key not available or is a dummy key.")
        self.gemini_model = None
        if GOOGLE_API_KEY and "dummy" not in GOOGLE_API_KEY:
            try:
                genai.configure(api_key=GOOGLE_API_KEY)
                self.gemini_model = genai.GenerativeModel(GEMINI_MODEL)
            except Exception as e: logger.error(f"Failed to configure Gemini: {e}")
        if not self.gemini_model: logger.warning("Google API key not available or is a dummy key.")

        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._requests: Dict[str, List[float]] = {}

    def is_configured(self) -> bool:
        return any([self.openai_client, self.claude_client, self.gemini_model])

    def reset(self) -> None:
        self._cache.clear()
        self._requests.clear()

    def get_fallback_order(self, plan_type: Optional[str]) -> List[str]:
        config = AI_MODEL_BY_PLAN.get(plan_type or "")
        if config and config.get("fallback_order"):
            return config["fallback_order"]
        logger.warning(f"Plan '{plan_type}' not found in AI_MODEL_BY_PLAN. Using default.")
        return DEFAULT_FALLBACK_ORDER

    # Per-user limit and result cache

    def _check_rate_limit(self, user_id: str) -> bool:
        now = time.time()
        recent = [t for t in self._requests.get(user_id, []) if now - t < 60]
        if len(recent) >= AI_USER_REQUESTS_PER_MINUTE:
            self._requests[user_id] = recent
            return False
        recent.append(now)
        self._requests[user_id] = recent
        return True

    def _get_cached(self, key: str) -> Any:
        entry = self._cache.get(key)
        if entry and time.time() - entry[1] < AI_CACHE_SECONDS:
            return entry[0]
        self._cache.pop(key, None)
        return None

    def _set_cached(self, key: str, data: Any) -> None:
        self._cache[key] = (data, time.time())

    # Providers

    async def _generate_with_openai(self, system_prompt: str, user_prompt: str) -> str:
        if not self.openai_client: raise ConnectionError("OpenAI client not available.")
        logger.info("Calling OpenAI API")
        response = await asyncio.wait_for(asyncio.to_thread(self.openai_client.chat.completions.create, model=AI_MODEL, messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": user_prompt}], temperature=AI_TEMPERATURE, max_tokens=AI_MAX_TOKENS), timeout=AI_TIMEOUT_SECONDS)
        content = response.choices[0].message.content
        if content is None: raise ValueError("OpenAI API returned None content.")
        logger.debug(f"OpenAI raw response (first 500 chars): {content[:500]}")
        return content

    async def _generate_with_claude(self, system_prompt: str, user_prompt: str) -> str:
        if not self.claude_client: raise ConnectionError("Claude client not available.")
        logger.info("Calling Claude API")
        response = await asyncio.wait_for(asyncio.to_thread(self.claude_client.messages.create, model=CLAUDE_MODEL, max_tokens=AI_MAX_TOKENS, temperature=AI_TEMPERATURE, system=system_prompt, messages=[{"role": "user", "content": user_prompt}]), timeout=AI_TIMEOUT_SECONDS)
        content = response.content[0].text
        logger.debug(f"Claude raw response (first 500 chars): {content[:500]}")
        return content

    async def _generate_with_gemini(self, system_prompt: str, user_prompt: str) -> str:
        if not self.gemini_model: raise ConnectionError("Gemini model not available.")
        logger.info("Calling Gemini API")
        response = await asyncio.wait_for(asyncio.to_thread(self.gemini_model.generate_content, f"{system_prompt}\n\n{user_prompt}"), timeout=AI_TIMEOUT_SECONDS)
        content = response.text if hasattr(response, 'text') else ''
        if not content: raise ValueError("Gemini API returned empty content.")
        logger.debug(f"Gemini raw response (first 500 chars): {content[:500]}")
        return content

    async def _generate(self, system_prompt: str, user_prompt: str, parse, plan_type: Optional[str]) -> Tuple[Any, str]:
        """Walk the plan's provider order until one returns parseable content"""
        order = self.get_fallback_order(plan_type)
        last_error: Optional[Exception] = None
        for attempt, provider in enumerate(order):
            try:
                logger.info(f"Attempting generation with {provider} (Plan: {plan_type or 'N/A'}, Attempt: {attempt + 1}/{len(order)})")
                if provider == "openai": content = await self._generate_with_openai(system_prompt, user_prompt)
                elif provider == "claude": content = await self._generate_with_claude(system_prompt, user_prompt)
                elif provider == "gemini": content = await self._generate_with_gemini(system_prompt, user_prompt)
                else:
                    logger.warning(f"Unknown provider {provider}. Skipping.")
                    continue
                return parse(content), provider
            except ConnectionError as e:
                logger.warning(f"{provider} client not available: {e}")
                last_error = e
            except Exception as e:
                logger.error(f"Error generating with {provider}: {type(e).__name__} - {e}")
                last_error = e
                if attempt < len(order) - 1:
                    await asyncio.sleep(2 ** attempt)

        raise last_error or RuntimeError("No AI provider available")

    # Operations

    async def generate_daily_actions(
        self,
        visions: List[Dict],
        user_id: str = "default",
        behavior: Optional[Dict] = None,
        plan_type: Optional[str] = None
    ) -> AIResponse:
        if not self._check_rate_limit(user_id):
            return AIResponse(success=False, error="Rate limit exceeded. Please try again later.")

        cache_key = f"actions_{user_id}_{json.dumps([v.get('id') for v in visions])}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return AIResponse(success=True, data=cached, cached=True)

        system_prompt = """You are an AI life coach that generates personalized daily actions for life transformation.

Guidelines:
- Generate exactly 2 actions maximum
- Each action should be 5-25 minutes
- Focus on highest priority visions first
- Make actions specific and concrete (not vague)

Response format: Return a JSON array with objects containing:
{"description": "...", "estimatedTime": minutes, "visionId": "vision_id", "category": "vision_category", "reasoning": "why this action"}"""
        vision_lines = "".join(
            f"\n- Category: {v.get('category')}\n- Vision: \"{v.get('description')}\"\n"
            f"- Priority: {v.get('priority', 1)}\n- Time Allocated: {v.get('timeAllocation', 30)} minutes\n"
            for v in visions
        )
        behavior_lines = ""
        if behavior:
            behavior_lines = (
                "\nUser behavior patterns:\n"
                f"- Average completion times: {', '.join(str(t) for t in behavior.get('completionTimes', []))} minutes\n"
                f"- Preferred action types: {', '.join(behavior.get('preferredActionTypes', []))}\n"
                f"- Most successful actions: {', '.join(behavior.get('successfulActions', []))}\n"
            )
        user_prompt = f"Generate personalized daily actions for this user:\n\nVisions:{vision_lines}{behavior_lines}\nGenerate 2 specific, actionable tasks for today."

        try:
            parsed, provider = await self._generate(system_prompt, user_prompt, ResponseParser.extract_json_array, plan_type)
            today = date.today().isoformat()
            default_vision = visions[0].get("id") if visions else None
            actions = [
                {
                    "visionId": item.get("visionId") or default_vision,
                    "description": item.get("description", ""),
                    "estimatedTime": clamp_minutes(item.get("estimatedTime")),
                    "date": today,
                    "aiGenerated": True,
                    "aiReasoning": item.get("reasoning"),
                }
                for item in parsed[:2]
                if isinstance(item, dict)
            ]
            self._set_cached(cache_key, actions)
            return AIResponse(success=True, data=actions, model=self._model_name(provider))
        except Exception as e:
            logger.error(f"AI actions generation error for user {user_id}: {e}")
            return AIResponse(
                success=False,
                data=fallback_actions(visions),
                error="AI temporarily unavailable, using fallback actions"
            )

    async def analyze_vision(
        self,
        description: str,
        category: str,
        user_id: str = "default",
        plan_type: Optional[str] = None
    ) -> AIResponse:
        if not self._check_rate_limit(user_id):
            return AIResponse(success=False, error="Rate limit exceeded. Please try again later.")

        cache_key = f"vision_{description[:50]}_{category}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return AIResponse(success=True, data=cached, cached=True)

        system_prompt = """You are an AI vision analyst that helps users refine and understand their life transformation goals.

Response format: Return JSON with:
{"themes": [...], "keyGoals": [...], "suggestedActions": [...], "timeComplexity": "low|medium|high", "feasibilityScore": 0.0-1.0, "improvements": [...]}"""
        user_prompt = f"Analyze this life vision:\n\nCategory: {category}\nVision Description: \"{description}\""

        try:
            parsed, provider = await self._generate(system_prompt, user_prompt, ResponseParser.extract_json_object, plan_type)
            self._set_cached(cache_key, parsed)
            return AIResponse(success=True, data=parsed, model=self._model_name(provider))
        except Exception as e:
            logger.error(f"AI vision analysis error for user {user_id}: {e}")
            return AIResponse(
                success=False,
                data=fallback_vision_analysis(description, category),
                error="AI temporarily unavailable, using basic analysis"
            )

    async def generate_insights(
        self,
        user_stats: Dict,
        user_id: str = "default",
        plan_type: Optional[str] = None
    ) -> AIResponse:
        if not self._check_rate_limit(user_id):
            return AIResponse(success=False, error="Rate limit exceeded. Please try again later.")

        cache_key = f"insights_{user_id}_{json.dumps(user_stats, sort_keys=True, default=str)}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return AIResponse(success=True, data=cached, cached=True)

        system_prompt = """You are an AI productivity analyst that generates personalized insights and recommendations based on user behavior data.

Guidelines:
- Generate 2-3 recommendations maximum
- Include confidence scores (0.0-1.0) based on data strength

Response format: Return JSON with:
{"recommendations": [{"title": "...", "description": "...", "confidence": 0.0-1.0, "type": "timing|duration|frequency|strategy"}],
 "insights": [{"metric": "...", "value": "...", "trend": "up|down|stable", "interpretation": "..."}]}"""
        user_prompt = (
            "Analyze this user's performance data and generate personalized insights:\n\n"
            f"- Completion Rate: {user_stats.get('completionRate')}%\n"
            f"- Average Completion Time: {user_stats.get('averageCompletionTime')} minutes\n"
            f"- Current Streak: {user_stats.get('streakCount')} days\n"
            f"- Most Active Hours: {', '.join(str(h) for h in user_stats.get('preferredTimes', []))}\n"
            f"- Vision Progress: {json.dumps(user_stats.get('visionProgress', {}))}"
        )

        try:
            parsed, provider = await self._generate(system_prompt, user_prompt, ResponseParser.extract_json_object, plan_type)
            self._set_cached(cache_key, parsed)
            return AIResponse(success=True, data=parsed, model=self._model_name(provider))
        except Exception as e:
            logger.error(f"AI insights generation error for user {user_id}: {e}")
            return AIResponse(
                success=False,
                data=fallback_insights(user_stats),
                error="AI temporarily unavailable, using fallback insights"
            )

    @staticmethod
    def _model_name(provider: str) -> str:
        return {"openai": AI_MODEL, "claude": CLAUDE_MODEL, "gemini": GEMINI_MODEL}.get(provider, AI_MODEL)

    @staticmethod
    def get_motivational_message(vision_description: str, day_count: int) -> str:
        return random.choice(MOTIVATIONAL_MESSAGES).format(vision=vision_description, day=day_count)

ai_service = AIService()
