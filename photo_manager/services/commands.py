"""
Reversible photo commands and the per-session command invoker.

A command is one of three dataclass variants. The invoker applies it
through the photo service, records it on a LIFO history and, on undo,
reverts the most recent one.

    invoker = CommandInvoker(photo_service, audit_log)
    await invoker.execute_command(UpdateCommand(user, photo_id, "new", ["tag"]))
    await invoker.undo_last_command()

Delete is irreversible: reverting it only records that undo is not
supported.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from photo_manager.exceptions import MutationStatus
from photo_manager.models.photo import Photo
from photo_manager.models.user import User
from photo_manager.schemas.photo import PhotoFile
from photo_manager.services.audit_log import AuditLog
from photo_manager.services.photo import PhotoService
from photo_manager.services.processing import ProcessingPipeline

logger = logging.getLogger("photo_manager.commands")


@dataclass
class UploadCommand:
    user: User
    file: PhotoFile
    description: Optional[str] = None
    hashtags: Sequence[str] = ()
    pipeline: Optional[ProcessingPipeline] = None
    # set once applied
    created_photo_id: Optional[str] = None
    undone: bool = False

    kind = "upload"


@dataclass
class UpdateCommand:
    user: User
    photo_id: str
    new_description: Optional[str]
    new_hashtags: Sequence[str] = ()
    # snapshot taken under the photo lock, right before the change
    captured: bool = False
    previous_description: Optional[str] = None
    previous_hashtags: List[str] = field(default_factory=list)
    status: Optional[MutationStatus] = None
    undone: bool = False

    kind = "update"

    def capture(self, photo: Photo) -> None:
        self.captured = True
        self.previous_description = photo.description
        self.previous_hashtags = list(photo.hashtags or [])


@dataclass
class DeleteCommand:
    user: User
    photo_id: str
    status: Optional[MutationStatus] = None
    undone: bool = False

    kind = "delete"


Command = Union[UploadCommand, UpdateCommand, DeleteCommand]


class CommandInvoker:
    """
    Executes commands and keeps their undo history.

    One invoker per session; history is never shared between users.
    """

    def __init__(self, photo_service: PhotoService, audit_log: AuditLog):
        self.photo_service = photo_service
        self.audit_log = audit_log
        self._history: List[Command] = []
        self._lock = asyncio.Lock()

    async def execute_command(self, command: Command) -> Union[Photo, MutationStatus]:
        """
        Apply ``command`` and push it on the history.

        The command is recorded even if the photo service reports a
        non-applied status or raises; the error still reaches the caller.
        """
        async with self._lock:
            try:
                return await self._apply(command)
            finally:
                self._history.append(command)

    async def undo_last_command(self) -> Optional[Command]:
        """Revert the most recent command. Returns it, or None if history is empty."""
        async with self._lock:
            if not self._history:
                return None
            command = self._history.pop()
            command.undone = await self._revert(command)
            logger.info(
                f"Undid {command.kind} command",
                extra={
                    "event": "photo",
                    "user_id": command.user.id,
                    "command": command.kind,
                    "undone": command.undone,
                },
            )
            return command

    @property
    def history(self) -> Tuple[Command, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    async def _apply(self, command: Command) -> Union[Photo, MutationStatus]:
        service = self.photo_service

        if isinstance(command, UploadCommand):
            photo = await service.upload(
                command.user,
                command.file,
                command.description,
                command.hashtags,
                command.pipeline,
            )
            command.created_photo_id = photo.id
            return photo

        if isinstance(command, UpdateCommand):
            command.status = await service.update(
                command.user,
                command.photo_id,
                command.new_description,
                command.new_hashtags,
                before_change=command.capture,
            )
            return command.status

        if isinstance(command, DeleteCommand):
            command.status = await service.delete(command.user, command.photo_id)
            return command.status

        raise TypeError(f"Unsupported command: {type(command).__name__}")

    async def _revert(self, command: Command) -> bool:
        """Undo ``command``. True only if something was actually reverted."""
        service = self.photo_service

        if isinstance(command, UploadCommand):
            if command.created_photo_id is None:
                return False
            status = await service.delete(command.user, command.created_photo_id)
            return status.applied

        if isinstance(command, UpdateCommand):
            if not command.captured:
                return False
            status = await service.update(
                command.user,
                command.photo_id,
                command.previous_description,
                command.previous_hashtags,
            )
            return status.applied

        if isinstance(command, DeleteCommand):
            self.audit_log.append(command.user.id, f"Undo delete not supported: {command.photo_id}")
            return False

        raise TypeError(f"Unsupported command: {type(command).__name__}")
