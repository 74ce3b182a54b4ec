# src/playground_api/mcp.py
"""Simulated MCP (Model Context Protocol) tool server.

Every tool returns canned or randomized data; nothing leaves the process.
Contexts are named tool bundles with their own key/value memory, which the
``memory_manager`` tool uses when a call names a context. Calls without one
share a server-wide memory.
"""

import copy
import logging
import math
import random
import string
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from playground_api.analytics import isoformat_z, utcnow
from playground_api.audio import generate_audio_data_url
from playground_api.errors import InvalidRequest, NotFound
from playground_api.images import placeholder_data_url
from playground_api.utils import unique_id

logger = logging.getLogger(__name__)

MCP_VERSION = "2.0.0"
COST_PER_CALL = 0.001
MAX_RANDOM_COUNT = 100

NEW_FEATURES = [
    "Image Analysis",
    "File Processing",
    "AI Art Generation",
    "Music Composition",
    "Language Translation",
    "Document Generation",
    "Task Scheduling",
]

PARAMETER_TYPES = {
    "string": (str,),
    "number": (int, float),
    "array": (list,),
    "object": (dict,),
}


@dataclass
class ToolCall:
    """Everything a tool handler may touch besides its arguments."""
    memory: Dict[str, Dict[str, Any]]
    rng: random.Random
    now: datetime

    @property
    def millis(self) -> int:
        return int(self.now.timestamp() * 1000)


@dataclass
class MCPTool:
    name: str
    description: str
    parameters: Dict[str, Dict[str, Any]]
    handler: Callable[[Dict[str, Any], ToolCall], Dict[str, Any]]

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

    def bind_arguments(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Fill defaults and check required parameters and their JSON types."""
        args = dict(params or {})
        for name, spec in self.parameters.items():
            if args.get(name) is None:
                if spec.get("required"):
                    raise InvalidRequest(f"Missing required parameter '{name}' for tool '{self.name}'")
                if "default" in spec:
                    args[name] = copy.deepcopy(spec["default"])
                continue

            expected = PARAMETER_TYPES.get(spec.get("type"))
            value = args[name]
            if expected and (isinstance(value, bool) or not isinstance(value, expected)):
                raise InvalidRequest(f"Parameter '{name}' of tool '{self.name}' must be of type {spec['type']}")
        return args


@dataclass
class MCPContext:
    id: str
    name: str
    description: str
    created_at: str
    updated_at: str
    tools: List[str] = field(default_factory=list)
    memory: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tools": list(self.tools),
            "memory": copy.deepcopy(self.memory),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Tool handlers
# ---------------------------------------------------------------------------

def web_search(args, call: ToolCall):
    query = args["query"]
    return {
        "results": [
            {
                "title": f"Search results for: {query}",
                "url": f"https://example.com/search?q={quote(query, safe='')}",
                "snippet": f"Relevant information about {query} from the web...",
                "timestamp": isoformat_z(call.now),
            }
        ]
    }


def code_analyzer(args, call: ToolCall):
    return {
        "analysis": {
            "bugs": ["Potential null pointer exception on line 15"],
            "performance": ["Consider using async/await for better performance"],
            "best_practices": ["Add error handling for API calls"],
            "complexity_score": call.rng.randint(1, 10),
            "maintainability": "Good",
        }
    }


def data_visualizer(args, call: ToolCall):
    return {
        "visualization": {
            "type": args["chart_type"],
            "data": args["data"],
            "config": {
                "title": "Generated Visualization",
                "x_axis": "Categories",
                "y_axis": "Values",
            },
            "svg_url": f"/api/mcp/visualizations/{call.millis}.svg",
        }
    }


def sentiment_analyzer(args, call: ToolCall):
    labels = ["positive", "negative", "neutral"]
    emotions = ["joy", "anger", "sadness", "fear", "surprise", "disgust"]
    picked = emotions[:call.rng.randint(1, 3)]
    return {
        "sentiment": {
            "label": call.rng.choice(labels),
            "confidence": call.rng.random(),
            "emotions": [{"emotion": e, "intensity": call.rng.random()} for e in picked],
        }
    }


def memory_manager(args, call: ToolCall):
    action, key = args["action"], args["key"]
    if action == "store":
        call.memory[key] = {"value": args.get("value"), "timestamp": isoformat_z(call.now)}
        return {"success": True, "message": f"Stored {key}"}
    if action == "retrieve":
        item = call.memory.get(key)
        if item is None:
            return {"error": "Key not found"}
        return {"value": item["value"], "timestamp": item["timestamp"]}
    if action == "delete":
        call.memory.pop(key, None)
        return {"success": True, "message": f"Deleted {key}"}
    return {"error": "Invalid action"}


IDEAS = [
    "A social network for plants",
    "AI-powered dream interpreter",
    "Virtual reality meditation garden",
    "Blockchain-based recipe sharing",
    "Smart mirror with personality",
    "Time capsule messaging app",
    "Emotion-based music generator",
    "AR pet adoption platform",
]

NAMES = ["Aurora", "Zephyr", "Nova", "Sage", "Phoenix", "Luna", "Atlas", "Iris"]

RANDOM_GENERATORS = {
    "number": lambda rng: rng.randrange(1000),
    "string": lambda rng: "".join(rng.choice(string.ascii_lowercase + string.digits) for _ in range(11)),
    "idea": lambda rng: rng.choice(IDEAS),
    "color": lambda rng: f"#{rng.randrange(0x1000000):06x}",
    "name": lambda rng: rng.choice(NAMES),
}


def random_generator(args, call: ToolCall):
    generator = RANDOM_GENERATORS.get(args["type"])
    if generator is None:
        return {"error": "Invalid type"}
    count = max(1, min(int(args["count"]), MAX_RANDOM_COUNT))
    results = [generator(call.rng) for _ in range(count)]
    return {"results": results[0] if count == 1 else results}


def image_analyzer(args, call: ToolCall):
    return {
        "analysis": {
            "objects": [
                {"name": "person", "confidence": 0.95, "bbox": [100, 150, 200, 400]},
                {"name": "car", "confidence": 0.87, "bbox": [300, 200, 500, 350]},
                {"name": "building", "confidence": 0.92, "bbox": [0, 0, 800, 300]},
            ],
            "text": [
                {"text": "STOP", "confidence": 0.98, "bbox": [150, 180, 190, 210]},
                {"text": "Main Street", "confidence": 0.85, "bbox": [400, 50, 500, 80]},
            ],
            "faces": [
                {"age": 25, "gender": "female", "emotion": "happy", "confidence": 0.89},
                {"age": 35, "gender": "male", "emotion": "neutral", "confidence": 0.76},
            ],
            "colors": ["#FF5733", "#33FF57", "#3357FF"],
            "dimensions": {"width": 800, "height": 600},
            "file_size": "2.3 MB",
            "format": "JPEG",
        }
    }


FILE_OPERATIONS = {
    "extract_text": {
        "text": "This is extracted text from the document...",
        "word_count": 1250,
        "pages": 5,
        "language": "en",
    },
    "parse_csv": {
        "rows": 1000,
        "columns": ["name", "age", "city", "salary"],
        "sample_data": [
            {"name": "John Doe", "age": 30, "city": "New York", "salary": 75000},
            {"name": "Jane Smith", "age": 28, "city": "Los Angeles", "salary": 82000},
        ],
        "statistics": {
            "avg_age": 29,
            "avg_salary": 78500,
            "cities": ["New York", "Los Angeles", "Chicago"],
        },
    },
    "validate_json": {
        "valid": True,
        "schema_errors": [],
        "size": "15.2 KB",
        "objects": 45,
    },
    "compress": {
        "original_size": "10.5 MB",
        "compressed_size": "2.1 MB",
        "compression_ratio": "80%",
        "format": "ZIP",
    },
    "convert": {
        "from_format": "PDF",
        "to_format": "DOCX",
        "success": True,
        "output_url": "/converted/document.docx",
    },
}


def file_processor(args, call: ToolCall):
    result = FILE_OPERATIONS.get(args["operation"])
    return copy.deepcopy(result) if result is not None else {"error": "Invalid operation"}


def ai_art_generator(args, call: ToolCall):
    return {
        "artwork": {
            "image_url": placeholder_data_url(args["prompt"], args["style"], "square"),
            "prompt": args["prompt"],
            "style": args["style"],
            "size": args["size"],
            "generation_time": "3.2s",
            "seed": call.rng.randrange(1000000),
            "model": "DALL-E-3-Simulator",
        }
    }


NOTES = ["C", "D", "E", "F", "G", "A", "B"]


def music_composer(args, call: ToolCall):
    rng = call.rng
    description = args["description"]
    melody = [f"{rng.choice(NOTES)}{rng.randint(3, 5)}" for _ in range(16)]
    return {
        "composition": {
            "title": f"AI Composition: {description[:30]}...",
            "genre": args["genre"],
            "duration": args["duration"],
            "tempo": rng.randint(80, 139),
            "key": f"{rng.choice(NOTES)} Major",
            "melody": melody,
            "chord_progression": ["C", "Am", "F", "G"],
            "instruments": args["instruments"],
            # One-second preview tone, whatever the requested duration
            "audio_url": generate_audio_data_url(description, "alloy", 1.0, 1.0, 1),
            "midi_url": f"/generated/composition_{call.millis}.mid",
            "sheet_music_url": f"/generated/sheet_{call.millis}.pdf",
        }
    }


LANGUAGES = {
    "en": "English", "es": "Spanish", "fr": "French", "de": "German",
    "it": "Italian", "pt": "Portuguese", "ru": "Russian", "ja": "Japanese",
    "ko": "Korean", "zh": "Chinese", "ar": "Arabic", "hi": "Hindi",
}


def language_translator(args, call: ToolCall):
    text, target = args["text"], args["to_language"]
    tag = f"[{target.upper()}]"
    source = args["from_language"]
    return {
        "translation": {
            "original_text": text,
            "translated_text": f"{tag} {text}",
            "from_language": "en" if source == "auto" else source,
            "to_language": target,
            "confidence": 0.7 + call.rng.random() * 0.3,
            "context": args["context"],
            "alternatives": [f"Alternative 1: {tag} {text}", f"Alternative 2: {tag} {text}"],
            "detected_language": LANGUAGES.get(source, "English"),
        }
    }


DOCUMENT_TEMPLATES = {
    "report": "Executive Summary\n\n1. Introduction\n2. Methodology\n3. Findings\n4. Recommendations\n5. Conclusion",
    "letter": "Dear [Recipient],\n\n[Opening paragraph]\n\n[Body paragraphs]\n\n[Closing paragraph]\n\nSincerely,\n[Your name]",
    "contract": "CONTRACT AGREEMENT\n\nParties: [Party A] and [Party B]\nTerms: [Contract terms]\nDuration: [Time period]\nSignatures: ___________",
    "resume": "PROFESSIONAL RESUME\n\nContact Information\nProfessional Summary\nWork Experience\nEducation\nSkills\nReferences",
    "proposal": "PROJECT PROPOSAL\n\n1. Project Overview\n2. Objectives\n3. Methodology\n4. Timeline\n5. Budget\n6. Expected Outcomes",
}


def document_generator(args, call: ToolCall):
    doc_type = args["document_type"]
    word_count = call.rng.randint(500, 1499)
    return {
        "document": {
            "type": doc_type,
            "title": f"Generated {doc_type[:1].upper()}{doc_type[1:]}",
            "content": DOCUMENT_TEMPLATES.get(doc_type, "Custom document content..."),
            "style": args["style"],
            "word_count": word_count,
            "pages": math.ceil(word_count / 250),
            "format": "DOCX",
            "download_url": f"/generated/document_{call.millis}.docx",
            "preview_url": f"/preview/document_{call.millis}.html",
        }
    }


def task_scheduler(args, call: ToolCall):
    return {
        "scheduled_task": {
            "id": f"task_{call.millis}",
            "name": args["task_name"],
            "schedule": args["schedule"],
            "action": args["action"],
            "status": "scheduled",
            "next_run": isoformat_z(call.now + timedelta(days=1)),
            "created_at": isoformat_z(call.now),
            "parameters": args["parameters"],
            "estimated_duration": "5 minutes",
            "priority": "medium",
        }
    }


def default_tools() -> Dict[str, MCPTool]:
    tools = [
        MCPTool("web_search", "Search the web for real-time information", {
            "query": {"type": "string", "required": True},
            "max_results": {"type": "number", "default": 5},
        }, web_search),
        MCPTool("code_analyzer", "Analyze code for bugs, performance issues, and best practices", {
            "code": {"type": "string", "required": True},
            "language": {"type": "string", "required": True},
        }, code_analyzer),
        MCPTool("data_visualizer", "Create visualizations from data", {
            "data": {"type": "array", "required": True},
            "chart_type": {"type": "string", "default": "bar"},
        }, data_visualizer),
        MCPTool("sentiment_analyzer", "Analyze sentiment and emotions in text", {
            "text": {"type": "string", "required": True},
        }, sentiment_analyzer),
        MCPTool("memory_manager", "Store and retrieve contextual information", {
            "action": {"type": "string", "required": True},
            "key": {"type": "string", "required": True},
            "value": {"type": "any", "required": False},
        }, memory_manager),
        MCPTool("random_generator", "Generate random data, ideas, or creative content", {
            "type": {"type": "string", "required": True},
            "count": {"type": "number", "default": 1},
        }, random_generator),
        MCPTool("image_analyzer", "Analyze images for objects, text, faces, and content", {
            "image_url": {"type": "string", "required": True},
            "analysis_type": {"type": "string", "default": "comprehensive"},
        }, image_analyzer),
        MCPTool("file_processor", "Process and analyze various file types (PDF, CSV, JSON, etc.)", {
            "file_url": {"type": "string", "required": True},
            "operation": {"type": "string", "required": True},
            "options": {"type": "object", "default": {}},
        }, file_processor),
        MCPTool("ai_art_generator", "Generate AI artwork and images from text descriptions", {
            "prompt": {"type": "string", "required": True},
            "style": {"type": "string", "default": "realistic"},
            "size": {"type": "string", "default": "512x512"},
            "quality": {"type": "string", "default": "standard"},
        }, ai_art_generator),
        MCPTool("music_composer", "Compose music and generate melodies from descriptions", {
            "description": {"type": "string", "required": True},
            "genre": {"type": "string", "default": "ambient"},
            "duration": {"type": "number", "default": 30},
            "instruments": {"type": "array", "default": ["piano"]},
        }, music_composer),
        MCPTool("language_translator", "Translate text between multiple languages with context awareness", {
            "text": {"type": "string", "required": True},
            "from_language": {"type": "string", "default": "auto"},
            "to_language": {"type": "string", "required": True},
            "context": {"type": "string", "default": "general"},
        }, language_translator),
        MCPTool("document_generator", "Generate various types of documents (reports, letters, contracts, etc.)", {
            "document_type": {"type": "string", "required": True},
            "content_outline": {"type": "string", "required": True},
            "style": {"type": "string", "default": "professional"},
            "length": {"type": "string", "default": "medium"},
        }, document_generator),
        MCPTool("task_scheduler", "Schedule and manage automated tasks and workflows", {
            "task_name": {"type": "string", "required": True},
            "schedule": {"type": "string", "required": True},
            "action": {"type": "string", "required": True},
            "parameters": {"type": "object", "default": {}},
        }, task_scheduler),
    ]
    return {tool.name: tool for tool in tools}


class MCPServer:
    """Tool registry plus the process-wide contexts and memory. Starts empty."""

    CONTEXT_FIELDS = ("name", "description", "tools", "memory")

    def __init__(self, tools: Optional[Dict[str, MCPTool]] = None, rng: Optional[random.Random] = None,
                 wall_clock: Callable[[], datetime] = utcnow):
        self.tools = tools or default_tools()
        self.rng = rng or random.Random()
        self.wall_clock = wall_clock
        self._memory: Dict[str, Dict[str, Any]] = {}
        self._contexts: List[MCPContext] = []
        self._lock = threading.Lock()

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.describe() for tool in self.tools.values()]

    def list_contexts(self) -> List[MCPContext]:
        with self._lock:
            return list(self._contexts)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            contexts_count = len(self._contexts)
        return {
            "message": "MCP Server is running",
            "version": MCP_VERSION,
            "available_tools": list(self.tools),
            "contexts_count": contexts_count,
            "new_features": list(NEW_FEATURES),
        }

    def reset(self):
        with self._lock:
            self._memory.clear()
            self._contexts.clear()

    def get_tool(self, name: Optional[str]) -> MCPTool:
        if not name:
            raise InvalidRequest("Tool name is required")
        tool = self.tools.get(name)
        if tool is None:
            raise NotFound(f"Tool '{name}' not found")
        return tool

    def execute_tool(self, name: Optional[str], params: Optional[Dict[str, Any]],
                     context_id: Optional[str] = None) -> Dict[str, Any]:
        tool = self.get_tool(name)
        args = tool.bind_arguments(params)
        with self._lock:
            memory = self._memory if context_id is None else self._find_context_locked(context_id).memory
            result = tool.handler(args, ToolCall(memory=memory, rng=self.rng, now=self.wall_clock()))
        logger.debug(f"MCP tool '{tool.name}' executed")
        return result

    def create_context(self, params: Optional[Dict[str, Any]]) -> MCPContext:
        params = params or {}
        tools = self._check_tools(params.get("tools") or [])
        now = isoformat_z(self.wall_clock())
        with self._lock:
            context = MCPContext(
                id=unique_id(f"ctx_{int(self.wall_clock().timestamp() * 1000)}", {c.id for c in self._contexts}),
                name=params.get("name") or "Unnamed Context",
                description=params.get("description") or "",
                tools=tools,
                created_at=now,
                updated_at=now,
            )
            self._contexts.append(context)
        logger.info(f"Created MCP context {context.id} ('{context.name}')")
        return context

    def update_context(self, context_id: Optional[str], params: Optional[Dict[str, Any]]) -> MCPContext:
        changes = {k: v for k, v in (params or {}).items() if k in self.CONTEXT_FIELDS}
        if "tools" in changes:
            changes["tools"] = self._check_tools(changes["tools"])
        if "memory" in changes and not isinstance(changes["memory"], dict):
            raise InvalidRequest("Context memory must be an object")

        with self._lock:
            context = self._find_context_locked(context_id)
            for key, value in changes.items():
                setattr(context, key, value)
            context.updated_at = isoformat_z(self.wall_clock())
        return context

    def _check_tools(self, tools: Any) -> List[str]:
        if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
            raise InvalidRequest("Context tools must be a list of tool names")
        unknown = [t for t in tools if t not in self.tools]
        if unknown:
            raise InvalidRequest(f"Unknown tools: {', '.join(unknown)}")
        return list(tools)

    def _find_context_locked(self, context_id: Optional[str]) -> MCPContext:
        for context in self._contexts:
            if context.id == context_id:
                return context
        raise NotFound("Context not found")
