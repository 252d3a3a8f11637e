"""Breadth-first resolution of a project's kit graph into a :class:`Lock`."""

from __future__ import annotations

from dataclasses import dataclass, field

from kitlock.errors import ResolutionError
from kitlock.kit import find_kit_metadata
from kitlock.lockfile.model import LOCK_SCHEMA_VERSION, Lock, LockedImage
from kitlock.observability import StructuredLogger
from kitlock.project import PROJECT_FILE, Image, Project, Vendor
from kitlock.registry import RegistryClient


@dataclass(slots=True)
class Resolver:
    """Resolves declared kits, their transitive kits and the single SDK.

    Kits are visited one breadth-first round at a time: everything discovered
    while processing a round is queued for the next one. A ``(name, vendor)``
    pair is recorded as known before its dependencies are queued, so cycles end
    at the "already resolved, same version" check.
    """

    registry: RegistryClient
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def resolve(self, project: Project) -> Lock:
        known: dict[tuple[str, str], str] = {}
        locked: list[LockedImage] = []
        # dict keeps first-seen order for stable error messages
        sdks: dict[Image, None] = {}
        if project.sdk is not None:
            # SDK images carry no kit metadata, so they are never scanned
            sdks[project.sdk] = None

        remaining: list[Image] = list(project.kits)
        while remaining:
            batch, remaining = remaining, []
            for image in batch:
                self.logger.log(
                    operation="resolve",
                    image=str(image),
                    level="debug",
                    message=f"Resolving kit '{image.name}'",
                )
                key = (image.name, image.vendor)
                known_version = known.get(key)
                if known_version is not None:
                    if known_version != image.version:
                        raise ResolutionError(
                            "Cannot have multiple versions of the same kit "
                            f"({image.name}-{image.version}@{image.vendor} != "
                            f"{image.name}-{known_version}@{image.vendor}).",
                            hint="Align the declared versions of this kit across the project and its kits.",
                            context={
                                "name": image.name,
                                "vendor": image.vendor,
                                "versions": f"{known_version}, {image.version}",
                            },
                        )
                    self.logger.log(
                        operation="resolve",
                        image=str(image),
                        level="debug",
                        message=f"Skipping kit '{image.name}' as it has already been resolved",
                    )
                    continue

                vendor = self._vendor(project, image)
                known[key] = image.version
                locked_image = LockedImage.from_registry(self.registry, vendor, image)
                metadata = find_kit_metadata(self.registry, vendor, locked_image, logger=self.logger)
                locked.append(locked_image)
                sdks.setdefault(metadata.sdk, None)
                remaining.extend(metadata.kits)

        self.logger.log(
            operation="resolve",
            image=None,
            level="debug",
            message="Resolving workspace SDK",
            extra={"sdks": [str(sdk) for sdk in sdks]},
        )
        if len(sdks) > 1:
            found = ", ".join(str(sdk) for sdk in sdks)
            raise ResolutionError(
                f"Cannot use multiple SDKs (found sdk: {found}).",
                hint="All kits in the dependency graph must require the same SDK.",
                context={"sdks": found},
            )
        if not sdks:
            raise ResolutionError(
                "No SDK was found for use.",
                hint=f"Specify an sdk in {PROJECT_FILE}.",
            )
        sdk = next(iter(sdks))
        vendor = self._vendor(project, sdk)
        return Lock(
            schema_version=LOCK_SCHEMA_VERSION,
            sdk=LockedImage.from_registry(self.registry, vendor, sdk),
            kit=tuple(locked),
        )

    def _vendor(self, project: Project, image: Image) -> Vendor:
        vendor = project.vendor(image.vendor)
        if vendor is None:
            raise ResolutionError(
                f"Vendor '{image.vendor}' is not specified in {PROJECT_FILE}.",
                hint=f"Add a [vendor.{image.vendor}] table with its registry.",
                context={"image": str(image)},
            )
        return vendor


def resolve(project: Project, *, registry: RegistryClient, logger: StructuredLogger | None = None) -> Lock:
    return Resolver(registry=registry, logger=logger or StructuredLogger()).resolve(project)
