#!/usr/bin/env python3
"""
Engineering metrics assistant

Answers questions about PR/MR cycle time, sprint cycle time, review
throughput and deployment frequency with any OpenAI-compatible chat model,
letting the model call the tools in metrics_tools.py to fetch real data.

Usage:
    python metrics_assistant.py "How long do our PRs in acme/api take to merge?"
    python metrics_assistant.py --command prCycleTime "Compare acme/api and acme/web"
    python metrics_assistant.py --command deployFrequency
"""

import argparse
import json
import logging
import sys
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import openai

from cli_utils import ArgumentParser, setup_logging
from metrics_config import MetricsConfig, load_config
from metrics_errors import MetricsError, UsageError
from metrics_tools import TOOL_SCHEMAS, invoke_tool

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 5

GENERAL_PROMPT = """You are an engineering metrics assistant. You help software teams understand and improve their engineering metrics including:
- PR cycle time (time from PR open to merge)
- Jira sprint cycle time (time from In Progress to Done for stories in a sprint)
- Code review throughput (reviews per week, reviewer load)
- Deployment frequency (how often code ships to production)
- DORA metrics (lead time, deployment frequency, change failure rate, MTTR)
- Developer productivity signals

You have tools available to fetch real data from GitHub (PR stats), GitLab (MR stats and comments) and Jira (sprint cycle time). You can also export sprint cycle time as CSV for pasting into spreadsheets; the CSV export supports filtering by squad name (matched against sprint name). Provide data-driven, actionable advice."""

# command -> (progress message, system prompt, default question)
COMMANDS = {
    'prCycleTime': (
        'Fetching PR cycle time metrics...',
        'You are an engineering metrics assistant. Your job is to help teams understand their pull request '
        'cycle time: the time from PR creation to merge. You also have access to Jira sprint cycle time data '
        '(time from In Progress to Done for stories in a sprint). Provide actionable insights and suggest '
        'improvements when cycle times are high.',
        'Give me a summary of what PR cycle time is, why it matters, and how to improve it.',
    ),
    'reviewThroughput': (
        'Analyzing review throughput...',
        'You are an engineering metrics assistant specializing in code review throughput. Help teams '
        'understand how many reviews are happening, who the top reviewers are, and whether reviews are a '
        'bottleneck.',
        'Explain code review throughput metrics and how to measure them.',
    ),
    'deployFrequency': (
        'Checking deployment frequency...',
        'You are an engineering metrics assistant specializing in deployment frequency, a key DORA metric. '
        'Help teams understand how often they deploy, and how to increase deployment frequency safely.',
        'Explain deployment frequency as a DORA metric and how to improve it.',
    ),
}


class LoopState(Enum):
    AWAITING_MODEL = 'awaiting-model'
    AWAITING_TOOL_RESULTS = 'awaiting-tool-results'
    DONE = 'done'


class ToolRound:
    """
    Drives one conversation between the model and the metrics tools.

    AWAITING_MODEL sends the transcript to the model and forwards any text
    it returns; a reply with tool calls moves to AWAITING_TOOL_RESULTS, a
    reply without any moves to DONE. AWAITING_TOOL_RESULTS runs the calls in
    order, appends their results and goes back to AWAITING_MODEL. At most
    max_rounds model requests are made; reaching the cap ends in DONE.
    """

    def __init__(self, client: Any, model: str, messages: List[Dict], config: MetricsConfig,
                 emit: Callable[[str], None] = print, tools: Optional[List[Dict]] = None,
                 max_rounds: int = MAX_TOOL_ROUNDS):
        self.client = client
        self.model = model
        self.messages = messages
        self.config = config
        self.emit = emit
        self.tools = TOOL_SCHEMAS if tools is None else tools
        self.max_rounds = max_rounds

        self.state = LoopState.AWAITING_MODEL
        self.rounds = 0
        self.pending_calls: List[Any] = []

    def step(self) -> LoopState:
        if self.state is LoopState.AWAITING_MODEL:
            self._request_model()
        elif self.state is LoopState.AWAITING_TOOL_RESULTS:
            self._run_tools()
        return self.state

    def run(self) -> LoopState:
        while self.state is not LoopState.DONE:
            self.step()
        return self.state

    def _request_model(self):
        if self.rounds >= self.max_rounds:
            logger.warning("Stopping after %d model rounds", self.rounds)
            self.state = LoopState.DONE
            return

        self.rounds += 1
        response = self.client.chat.completions.create(
            model=self.model,
            messages=self.messages,
            tools=self.tools,
        )
        message = response.choices[0].message

        if message.content:
            self.emit(message.content)

        tool_calls = list(message.tool_calls or [])
        if not tool_calls:
            self.state = LoopState.DONE
            return

        self.messages.append({
            'role': 'assistant',
            'content': message.content or '',
            'tool_calls': [
                {
                    'id': call.id,
                    'type': 'function',
                    'function': {'name': call.function.name, 'arguments': call.function.arguments},
                }
                for call in tool_calls
            ],
        })
        self.pending_calls = tool_calls
        self.state = LoopState.AWAITING_TOOL_RESULTS

    def _run_tools(self):
        for call in self.pending_calls:
            name = call.function.name
            try:
                arguments = json.loads(call.function.arguments or '{}')
            except json.JSONDecodeError as e:
                result = f"Invalid arguments for {name}: {e}"
            else:
                if isinstance(arguments, dict):
                    result = invoke_tool(name, arguments, self.config)
                else:
                    result = f"Invalid arguments for {name}: expected a JSON object"

            self.messages.append({'role': 'tool', 'tool_call_id': call.id, 'content': result})

        self.pending_calls = []
        self.state = LoopState.AWAITING_MODEL


def build_messages(command: Optional[str], prompt: str) -> List[Dict]:
    """System and user messages for a command ('' or None is the general assistant)."""
    if command:
        if command not in COMMANDS:
            valid = ', '.join(COMMANDS)
            raise UsageError(f"Unknown command '{command}'. Valid commands: {valid}")
        _, system_prompt, default_prompt = COMMANDS[command]
        prompt = prompt or default_prompt
    else:
        system_prompt = GENERAL_PROMPT
        if not prompt:
            raise UsageError('Ask a question or pick a --command.')

    return [
        {'role': 'system', 'content': system_prompt},
        {'role': 'user', 'content': prompt},
    ]


def build_client(config: MetricsConfig) -> openai.OpenAI:
    return openai.OpenAI(
        api_key=config.require('openai_api_key'),
        base_url=config.openai_base_url or None,
    )


def ask(command: Optional[str], prompt: str, config: MetricsConfig, client: Any = None,
        emit: Callable[[str], None] = print) -> ToolRound:
    """Run one assistant request; text is streamed through emit."""
    messages = build_messages(command, prompt)
    if command:
        logger.info(COMMANDS[command][0])

    loop = ToolRound(client or build_client(config), config.openai_model, messages, config, emit=emit)
    loop.run()
    return loop


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog='metrics_assistant.py', description='Ask the engineering metrics assistant')
    parser.add_argument('prompt', nargs='*', help='Question for the assistant')
    parser.add_argument('--command', choices=sorted(COMMANDS), help='Focus the assistant on one metric')
    parser.add_argument('--env-file', default='.env', help='dotenv file with credentials (default: .env)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)
        ask(args.command, ' '.join(args.prompt).strip(), load_config(args.env_file))
    except openai.OpenAIError as e:
        print(f"Error talking to the model: {e}", file=sys.stderr)
        return 1
    except MetricsError as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
