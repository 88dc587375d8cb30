from __future__ import annotations

import json
import asyncio
import re
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse

app = FastAPI()


CANNED_FILES = {
    "README.md": "# Tiny Linux\n\nGenerate, Setup, Build, and Test a minimal Buildroot image.",
    "scripts/setup.sh": (
        "#!/bin/bash\nset -e\n"
        'PROJECT_ROOT="$(cd "$(dirname "$0")/.." && pwd)"\n'
        'mkdir -p "$PROJECT_ROOT"/{buildroot,configs,board,output,scripts}\n'
        'git clone -b 2024.02.x https://gitlab.com/buildroot.org/buildroot.git "$PROJECT_ROOT/buildroot"'
    ),
    "configs/tiny_linux_defconfig": (
        "BR2_x86_64=y\nBR2_PACKAGE_BUSYBOX_STATIC_LINK=y\nBR2_TARGET_ROOTFS_CPIO=y\n"
        "BR2_TARGET_ROOTFS_CPIO_GZIP=y\nBR2_LINUX_KERNEL=y\n"
        'BR2_LINUX_KERNEL_CONFIG_FRAGMENT_FILES="${CONFIG_DIR}/../configs/kernel_fragment.config"'
    ),
    "configs/kernel_fragment.config": (
        "CONFIG_64BIT=y\nCONFIG_DEVTMPFS=y\nCONFIG_DEVTMPFS_MOUNT=y\nCONFIG_TTY=y\n"
        "CONFIG_SERIAL_8250=y\nCONFIG_SERIAL_8250_CONSOLE=y"
    ),
    "scripts/build.sh": (
        "#!/bin/bash\nset -e\n"
        'PROJECT_ROOT="$(cd "$(dirname "$0")/.." && pwd)"\n'
        'make -C "$PROJECT_ROOT/buildroot" O="$PROJECT_ROOT/output" -j$(nproc)'
    ),
    "scripts/test.sh": (
        "#!/bin/bash\nset -e\n"
        "qemu-system-x86_64 -kernel bzImage -initrd rootfs.cpio.gz "
        '-append "console=ttyS0" -nographic'
    ),
}

FILE_NAME = re.compile(r"Generate a file named '([^']+)'")
FIX_TARGET = re.compile(r"\[FIX:(configs/[^\]]+)\]\.\.\.\[/FIX\] tokens")


def _build_simulation(prompt: str) -> str:
    match = FIX_TARGET.search(prompt)
    target = match.group(1) if match else "configs/kernel_fragment.config"
    fixed = CANNED_FILES["configs/kernel_fragment.config"] + "\nCONFIG_VIRTIO_CONSOLE=y"
    return (
        "[LOG]make -C buildroot O=output tiny_linux_defconfig\n  CC  init/main.o[/LOG]\n"
        "[ERROR]drivers/char/virtio_console.c: error: CONFIG_VIRTIO_CONSOLE is not set[/ERROR]\n"
        "[ANALYSIS]The kernel fragment is missing CONFIG_VIRTIO_CONSOLE=y.[/ANALYSIS]\n"
        f"[FIX:{target}]\n{fixed}\n[/FIX]\n"
        "[LOG]Rebuilding...\n  LD  vmlinux\n  Kernel: arch/x86/boot/bzImage is ready[/LOG]\n"
        "[SUCCESS]"
    )


def _script_log(prompt: str) -> str:
    if "scripts/test.sh" in prompt:
        return (
            "+ qemu-system-x86_64 -kernel output/images/bzImage -nographic\n"
            "Linux version 6.6.18 (builder@buildroot)\n"
            "Run /init as init process\n"
            "Welcome to Buildroot\n"
            "buildroot login: "
        )
    return (
        "+ set -e\n"
        "+ mkdir -p output\n"
        "Cloning into 'buildroot'...\n"
        "done.\n"
    )


def _prompt_of(body: dict[str, Any]) -> str:
    return "\n".join(str(m.get("content", "")) for m in body.get("messages", []))


async def _event_stream(text: str) -> AsyncGenerator[str, None]:
    chunk_size = 24
    for i in range(0, len(text), chunk_size):
        chunk = text[i : i + chunk_size]
        data = {
            "choices": [
                {
                    "delta": {
                        "content": chunk,
                    }
                }
            ]
        }
        yield f"data: {json.dumps(data)}\n\n"
        await asyncio.sleep(0.01)
    yield "data: [DONE]\n\n"


@app.post("/chat/completions")
async def chat_completions(request: Request):
    body: dict[str, Any] = await request.json()
    prompt = _prompt_of(body)

    if body.get("stream", False):
        if "Control Tokens:" in prompt:
            payload = _build_simulation(prompt)
        else:
            payload = _script_log(prompt)
        return StreamingResponse(_event_stream(payload), media_type="text/event-stream")

    match = FILE_NAME.search(prompt)
    content = CANNED_FILES.get(match.group(1), "") if match else ""
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": content,
                }
            }
        ]
    }
