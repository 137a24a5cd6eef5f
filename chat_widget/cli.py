"""终端版聊天挂件，用于在没有前端的情况下联调后端。

    chat-widget --base-url http://localhost:8000

输入普通文本即提问，回答按流式增量打印。支持的命令：
/samples  列出示例问题      /ask <n>  提问第 n 个示例问题
/rate <satisfied|neutral|unsatisfied>
/relevant <yes|no>  对最近一条回答反馈是否切题
/quit
"""

import argparse
import asyncio
import sys
from typing import Dict, Optional

from chat_widget.api.service import ChatWidgetSession
from chat_widget.config.settings import settings
from chat_widget.domain.exceptions import BusinessError
from chat_widget.domain.models import Message, MessageKind


class _DeltaPrinter:
    """把快照转换成终端上的增量输出。"""

    def __init__(self, out=sys.stdout):
        self._out = out
        self._printed: Dict[int, str] = {}

    def __call__(self, index: int, message: Message) -> None:
        if message.role != "assistant":
            return
        shown = self._printed.get(index, "")
        if not shown and message.content:
            prefix = "assistant[tool_calls]> " if message.kind == MessageKind.TOOL_CALLS else "assistant> "
            self._out.write(prefix)
        if message.content.startswith(shown):
            self._out.write(message.content[len(shown):])
        else:
            # 错误文案替换了已打印的内容
            self._out.write("\n" + message.content)
        self._printed[index] = message.content
        if message.complete:
            self._out.write("\n")
        self._out.flush()


def _last_assistant_index(session: ChatWidgetSession) -> Optional[int]:
    for idx in range(len(session.messages) - 1, -1, -1):
        if session.messages[idx].role == "assistant":
            return idx
    return None


async def _handle_command(session: ChatWidgetSession, line: str) -> bool:
    """处理斜杠命令，返回 False 表示退出。"""

    cmd, _, arg = line.partition(" ")
    arg = arg.strip()
    if cmd == "/quit":
        return False
    if cmd == "/samples":
        for i, q in enumerate(session.sample_questions()):
            print(f"  [{i}] {q}")
    elif cmd == "/ask":
        await session.ask_sample(int(arg or "0"))
    elif cmd == "/rate":
        ok = await session.rate(arg)
        print("Thank you for your feedback!" if ok else "(feedback not delivered)")
    elif cmd == "/relevant":
        idx = _last_assistant_index(session)
        if idx is None:
            print("(no assistant answer yet)")
        else:
            await session.mark_relevance(idx, arg.lower() in {"y", "yes", "true", "1"})
            print("Thank you for your feedback!")
    else:
        print(f"unknown command: {cmd}")
    return True


async def run_repl(session: ChatWidgetSession) -> None:
    session.subscribe(_DeltaPrinter())
    for i, q in enumerate(session.sample_questions()):
        print(f"Try asking [{i}]: {q}")
    while True:
        try:
            line = (await asyncio.to_thread(input, "you> ")).strip()
        except EOFError:
            break
        if not line:
            continue
        try:
            if line.startswith("/"):
                if not await _handle_command(session, line):
                    break
                continue
            await session.send(line)
        except (BusinessError, ValueError) as exc:
            print(f"error: {exc}")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="chat-widget",
        description="Terminal chat widget with streaming answers",
    )
    parser.add_argument("--base-url", default=None, help=f"Backend origin (default: {settings.base_url})")
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    args = parser.parse_args(argv)

    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url.rstrip("/")
    if args.timeout:
        overrides["http_timeout"] = args.timeout
    cfg = settings.model_copy(update=overrides) if overrides else settings

    async def _main() -> None:
        async with ChatWidgetSession(cfg) as session:
            await run_repl(session)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
