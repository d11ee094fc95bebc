"""
@description 文章浏览事件写缓冲
@responsibility 在内存中累积浏览事件，按容量或定时批量写库，写库失败时重新入队等待重试
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from app.schemas.view_event import ViewEvent
from app.services.view_events import insert_view_events

BUFFER_LIMIT = 1000
FLUSH_INTERVAL = 2 * 60

Writer = Callable[[list[ViewEvent]], Awaitable[Any]]


class ViewEventBuffer:
    """
    浏览事件缓冲区（每个进程一个实例）

    - enqueue 只做内存追加，不阻塞、不抛异常
    - 同一时刻最多一个批次在写库：_flushing 的检查、置位与取出批次在同一段
      同步代码中完成，中间没有 await
    - 写库失败的批次放回队首，保持原有顺序，没有重试上限
    """

    def __init__(
        self,
        writer: Optional[Writer] = None,
        buffer_limit: int = BUFFER_LIMIT,
        flush_interval: float = FLUSH_INTERVAL,
    ):
        self._writer = writer or insert_view_events
        self._buffer_limit = buffer_limit
        self._flush_interval = flush_interval
        self._pending: list[ViewEvent] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flushing = False
        self._stopped = False
        self._tasks: set[asyncio.Task] = set()
        # 当前写库批次完成时置位
        self._current: Optional[asyncio.Future] = None

        self.flushed_total = 0
        self.failed_flushes = 0
        self.last_flush_at: Optional[datetime] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    def enqueue(self, event: ViewEvent) -> None:
        """追加事件；达到容量立即触发写库，否则确保已有定时写库"""
        self._pending.append(event)
        if len(self._pending) >= self._buffer_limit:
            self._start_flush()
            return
        self._schedule_flush()

    async def flush(self) -> None:
        """把当前缓冲的全部事件作为一个批次写库，已有写库在进行时直接返回"""
        batch = self._take_batch()
        if batch is None:
            return
        await self._write_batch(batch)

    async def stop(self, timeout: float = 5.0) -> None:
        """关闭时尽力写完剩余事件，不保证一定成功"""
        self._stopped = True
        self._cancel_timer()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        # 进行中的写库可能来自定时器、容量触发或手动 flush，写完后还可能接着触发下一批
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning("[analytics-buffer] 关闭前写库超时")
                break

            if self._current is not None:
                done, _ = await asyncio.wait({self._current}, timeout=remaining)
                if not done:
                    logger.warning("[analytics-buffer] 进行中的写库未在超时内完成")
                    break
                continue

            if not self._pending:
                break

            failed_before = self.failed_flushes
            try:
                await asyncio.wait_for(self.flush(), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("[analytics-buffer] 关闭前写库超时")
                break
            if self.failed_flushes > failed_before:
                break

        if self._pending:
            logger.warning(f"[analytics-buffer] 关闭时仍有 {self.pending_count} 条事件未保存")
        else:
            logger.info("[analytics-buffer] 缓冲区已清空")

    def stats(self) -> dict:
        return {
            "pending": self.pending_count,
            "flushing": self._flushing,
            "timer_scheduled": self._timer is not None,
            "flushed_total": self.flushed_total,
            "failed_flushes": self.failed_flushes,
            "last_flush_at": self.last_flush_at.isoformat() if self.last_flush_at else None,
        }

    def _take_batch(self) -> Optional[list[ViewEvent]]:
        if self._flushing or not self._pending:
            return None
        self._flushing = True
        self._current = asyncio.get_running_loop().create_future()
        batch, self._pending = self._pending, []
        self._cancel_timer()
        return batch

    async def _write_batch(self, batch: list[ViewEvent]) -> None:
        succeeded = False
        try:
            await self._writer(batch)
            succeeded = True
        except asyncio.CancelledError:
            self._pending = batch + self._pending
            raise
        except Exception as e:
            self.failed_flushes += 1
            self._pending = batch + self._pending
            logger.error(f"[analytics-buffer] 写库失败，{len(batch)} 条事件重新入队: {e}")
        finally:
            self._flushing = False
            current, self._current = self._current, None
            if current is not None and not current.done():
                current.set_result(None)

        if succeeded:
            self.flushed_total += len(batch)
            self.last_flush_at = datetime.now()
            logger.debug(f"[analytics-buffer] 已写入 {len(batch)} 条浏览事件")
            # 写库期间又积满了一批
            if len(self._pending) >= self._buffer_limit:
                self._start_flush()
                return

        if self._pending:
            self._schedule_flush()

    def _start_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[analytics-buffer] 没有运行中的事件循环，事件暂留缓冲区")
            return

        batch = self._take_batch()
        if batch is None:
            return

        task = loop.create_task(self._write_batch(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_flush(self) -> None:
        if self._timer is not None or self._stopped:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[analytics-buffer] 没有运行中的事件循环，无法设置定时写库")
            return
        self._timer = loop.call_later(self._flush_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._start_flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
