"""
LLM-powered demo roster generator for the Session Scheduler.
STRATEGY: one batched request per category (technicians, clients) to stay under RPM limits.
Strong prompts + robust parsing + per-item pydantic validation.
"""

import os
import json
import logging
import re
import google.generativeai as genai
from typing import List, Tuple, Dict, Any, Type, Optional
from datetime import date, timedelta
from pydantic import ValidationError, BaseModel

from models import (
    TechnicianProfile,
    AvailabilitySlot,
    Client,
    Authorization,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# Keys an LLM likes to wrap its array in
LIST_KEYS = ['technicians', 'clients', 'items', 'data', 'result']


class DataGenerator:
    def __init__(self, api_key: Optional[str] = None, model_name: str = DEFAULT_MODEL):
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError("GOOGLE_API_KEY not found. Please set it in environment.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(model_name)
        self.total_cost = 0.0

    def _estimate_cost(self, prompt_tokens: int, response_tokens: int) -> float:
        return (prompt_tokens * 0.075 + response_tokens * 0.30) / 1_000_000

    def _robust_parse_json(self, raw_text: str) -> List[Any]:
        """
        Strip Markdown fences and normalize the payload into a list of items.
        """
        if not raw_text:
            return []

        # 1. Clean Markdown Code Blocks
        clean_text = re.sub(r"```(?:json)?\s*|\s*```", "", raw_text).strip()

        try:
            data = json.loads(clean_text)
        except json.JSONDecodeError:
            # Fallback: pull the outermost list out of surrounding chatter
            match = re.search(r'(\[.*\])', clean_text, re.DOTALL)
            if not match:
                return []
            try:
                data = json.loads(match.group(1))
            except json.JSONDecodeError:
                return []

        # 2. Normalize Data Shape
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in LIST_KEYS:
                if key in data and isinstance(data[key], list):
                    return data[key]
            return [data]
        return []

    def _fetch_raw(self, prompt: str) -> Tuple[List[Any], float]:
        """
        Executes a generation request and returns the parsed items plus its cost.
        API failures are logged and yield an empty batch.
        """
        try:
            generation_config = genai.GenerationConfig(
                response_mime_type="application/json",
                max_output_tokens=16000,
                temperature=0.7
            )
            response = self.model.generate_content(prompt, generation_config=generation_config)
        except Exception as e:
            logger.error(f"Batch Generation Failed: {e}")
            return [], 0.0

        cost = 0.0
        usage = getattr(response, 'usage_metadata', None)
        if usage is not None:
            cost = self._estimate_cost(usage.prompt_token_count, usage.candidates_token_count)
        self.total_cost += cost

        return self._robust_parse_json(response.text), cost

    def _validate_item(self, model_class: Type[BaseModel], item: Dict[str, Any], label: str):
        try:
            return model_class(**item)
        except (ValidationError, TypeError) as e:
            logger.warning(f"Skipping invalid {label}: {e}")
            return None

    def generate_technicians(
        self,
        user_id: str,
        count: int = 5,
        areas: Optional[List[str]] = None
    ) -> Tuple[List[TechnicianProfile], List[AvailabilitySlot], float]:
        """
        Technicians plus their recurring weekly availability, in one request.
        IDs are assigned here so slots always point at a real technician.
        """
        areas = areas or ["Northside", "Downtown", "Eastgate"]

        prompt = f"""
        Generate {count} behavior technicians working for a home-based therapy practice.

        OUTPUT FORMAT:
        A single valid JSON Array containing {count} objects.

        STRICT SCHEMA RULES:
        1. FIELDS:
           - "name" (string, full name)
           - "max_hours_per_week" (integer between 20 and 40)
           - "skills" (list of strings, e.g. ["early-intervention", "verbal-behavior"])
           - "home_location" (one of {json.dumps(areas)})
           - "service_areas" (non-empty subset of {json.dumps(areas)})
           - "availability" (list of objects: {{ "day_of_week": 0-6, "start_minute": int, "end_minute": int }})

        2. AVAILABILITY RULES:
           - "day_of_week": 0 = Monday ... 6 = Sunday. Mostly weekdays.
           - Minutes are counted from midnight (e.g. 540 = 9:00 AM, 1020 = 5:00 PM).
           - "end_minute" MUST be greater than "start_minute". Max value 1440.
           - Vary the windows: some full days, some mornings only, some afternoons only.
        """

        logger.info(f"Requesting {count} technicians...")
        raw_items, cost = self._fetch_raw(prompt)

        technicians: List[TechnicianProfile] = []
        slots: List[AvailabilitySlot] = []
        for i, item in enumerate(raw_items):
            if not isinstance(item, dict):
                continue
            availability = item.pop('availability', None) or []
            item['id'] = f"tech_{i + 1:02d}"
            item['user_id'] = user_id

            tech = self._validate_item(TechnicianProfile, item, f"technician {i}")
            if tech is None:
                continue
            technicians.append(tech)

            for raw_slot in availability:
                if not isinstance(raw_slot, dict):
                    continue
                slot = self._validate_item(
                    AvailabilitySlot, {**raw_slot, 'technician_id': tech.id}, f"slot for {tech.id}"
                )
                if slot:
                    slots.append(slot)

        logger.info(f"Generated {len(technicians)} technicians with {len(slots)} availability slots")
        return technicians, slots, cost

    def generate_clients(
        self,
        user_id: str,
        technician_ids: List[str],
        count: int = 10,
        start_date: Optional[date] = None,
        areas: Optional[List[str]] = None
    ) -> Tuple[List[Client], List[Authorization], float]:
        """
        Clients, each with one active authorization covering the next 90 days.
        """
        if start_date is None:
            start_date = date.today()
        end_date = start_date + timedelta(days=90)
        areas = areas or ["Northside", "Downtown", "Eastgate"]

        prompt = f"""
        Generate {count} clients of a home-based ABA therapy practice.

        OUTPUT FORMAT:
        A single valid JSON Array containing {count} objects.

        STRICT SCHEMA RULES:
        1. FIELDS:
           - "name" (string, full name)
           - "location" (one of {json.dumps(areas)})
           - "assigned_technician_id" (one of {json.dumps(technician_ids)} or null; about half should be null)
           - "authorization": {{ "service_code": "97153" or "97155", "total_units": int }}

        2. AUTHORIZATION RULES:
           - One unit = 15 minutes. The authorization spans 90 days (about 13 weeks).
           - "total_units" between 150 and 700 so that weekly demand is 1 to 6 two-hour sessions.
        """

        logger.info(f"Requesting {count} clients...")
        raw_items, cost = self._fetch_raw(prompt)

        clients: List[Client] = []
        authorizations: List[Authorization] = []
        known_techs = set(technician_ids)
        for i, item in enumerate(raw_items):
            if not isinstance(item, dict):
                continue
            auth_data = item.pop('authorization', None) or {}
            item['id'] = f"client_{i + 1:02d}"
            item['user_id'] = user_id
            # Hallucinated technician ids are dropped rather than rejected
            if item.get('assigned_technician_id') not in known_techs:
                item['assigned_technician_id'] = None

            client = self._validate_item(Client, item, f"client {i}")
            if client is None:
                continue

            total_units = auth_data.get('total_units', 0)
            authorization = self._validate_item(Authorization, {
                'id': f"auth_{i + 1:02d}",
                'user_id': user_id,
                'client_id': client.id,
                'service_code': str(auth_data.get('service_code', '97153')),
                'total_units': total_units,
                'remaining_units': total_units,
                'start_date': start_date,
                'end_date': end_date,
            }, f"authorization for {client.id}")
            if authorization is None:
                continue

            clients.append(client)
            authorizations.append(authorization)

        logger.info(f"Generated {len(clients)} clients with authorizations")
        return clients, authorizations, cost

    def generate_roster(
        self,
        user_id: str,
        technician_count: int = 5,
        client_count: int = 10,
        start_date: Optional[date] = None
    ) -> Tuple[Dict[str, List], float]:
        technicians, slots, c1 = self.generate_technicians(user_id, technician_count)
        clients, authorizations, c2 = self.generate_clients(
            user_id, [t.id for t in technicians], client_count, start_date
        )
        return {
            "technicians": technicians,
            "availability": slots,
            "clients": clients,
            "authorizations": authorizations,
        }, c1 + c2
