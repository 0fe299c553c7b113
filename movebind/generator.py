"""
Binding generation pipeline.

directive -> resolve -> fetch and decode -> register -> synthesize -> render
-> write. Rendering happens entirely in memory; files are written only once
every module of the package has been rendered, so a failure at any stage
leaves the output directory untouched.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .codegen import CodeSynthesizer, PythonPrinter, TypeMapper
from .config import MoveBindSettings
from .errors import ManifestError
from .manifest import GenerationDirective, Manifest
from .network import Network
from .provider import ModuleProvider
from .registry import BuildContext
from .resolver import PackageIdResolver
from .runtime.types import Address
from .schema import Package

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[Network, MoveBindSettings], PackageIdResolver]
ProviderFactory = Callable[[Network, MoveBindSettings], ModuleProvider]


@dataclass
class GeneratedPackage:
    """Rendered sources of one binding package, not yet written."""

    alias: str
    path: str
    address: Address
    version: int
    files: Dict[str, str] = field(default_factory=dict)

    def relative_dir(self) -> Path:
        return Path(*self.path.split("."))


def package_addresses(package: Package) -> List[Address]:
    """Every address the package's datatypes can be referenced by."""
    addresses = set(package.type_origins.addresses())
    addresses.add(package.address)
    for module in package.modules.values():
        addresses.add(module.address)
    return sorted(addresses)


class BindingGenerator:
    """Generates binding packages within one build context.

    Example:
        >>> generator = BindingGenerator()  # doctest: +SKIP
        >>> generator.run(GenerationDirective(alias="framework", package="0x2"))  # doctest: +SKIP
    """

    def __init__(
        self,
        context: Optional[BuildContext] = None,
        resolver_factory: ResolverFactory = PackageIdResolver,
        provider_factory: ProviderFactory = ModuleProvider,
        printer: Optional[PythonPrinter] = None,
    ):
        self.context = context or BuildContext()
        self.resolver_factory = resolver_factory
        self.provider_factory = provider_factory
        self.printer = printer or PythonPrinter()

    @property
    def settings(self) -> MoveBindSettings:
        return self.context.settings

    def generate(self, directive: GenerationDirective) -> GeneratedPackage:
        """Resolve, fetch, register and render one package in memory."""
        settings = self.settings
        address = self.resolver_factory(directive.network, settings).resolve(directive.package)
        package = self.provider_factory(directive.network, settings).fetch(address)

        path = self.context.binding_path(directive.alias)
        registry = self.context.registry
        previous = registry.package(directive.alias)
        registry.register(directive.alias, path, package_addresses(package))
        try:
            view = registry.view(directive.alias, directive.deps)
            synthesizer = CodeSynthesizer(TypeMapper(view))
            decl = synthesizer.build_package(package, directive.alias, path)
            files = self.printer.render_package(decl)
        except Exception:
            # nothing was written, so dependents must not see this package
            registry.unregister(directive.alias)
            if previous is not None:
                registry.register(previous.alias, previous.path, previous.addresses)
            raise

        logger.info(
            "Generated %s v%d (%d modules) as %s",
            directive.alias,
            package.version,
            len(decl.modules),
            path,
        )
        return GeneratedPackage(
            alias=directive.alias,
            path=path,
            address=package.address,
            version=package.version,
            files=files,
        )

    def write(self, generated: GeneratedPackage, output_dir: Optional[Path] = None) -> Path:
        """Write rendered files, replacing stale modules of a previous run."""
        root = Path(output_dir or self.settings.output_dir)
        target = root / generated.relative_dir()
        target.mkdir(parents=True, exist_ok=True)

        for stale in sorted(target.glob("*.py")):
            if stale.name not in generated.files:
                logger.debug("Removing stale module %s", stale)
                stale.unlink()
        for name, source in sorted(generated.files.items()):
            (target / name).write_text(source, encoding="utf-8")

        logger.info("Wrote %d files to %s", len(generated.files), target)
        return target

    def run(
        self, directive: GenerationDirective, output_dir: Optional[Path] = None
    ) -> GeneratedPackage:
        generated = self.generate(directive)
        self.write(generated, output_dir)
        return generated

    def run_all(
        self, directives: Iterable[GenerationDirective], output_dir: Optional[Path] = None
    ) -> List[GeneratedPackage]:
        """Generate directives strictly in the given order."""
        return [self.run(directive, output_dir) for directive in directives]


def generate_bindings(
    package: str,
    alias: str,
    network: Network = Network.MAINNET,
    deps: Sequence[str] = (),
    output_dir: Optional[Path] = None,
    base_path: Optional[str] = None,
    settings: Optional[MoveBindSettings] = None,
) -> GeneratedPackage:
    """Generate and write a single binding package.

    Raises:
        ManifestError: the alias, package reference or dependencies are invalid
    """
    try:
        directive = GenerationDirective(
            alias=alias, package=package, network=network, deps=list(deps)
        )
    except ValidationError as e:
        raise ManifestError(f"Invalid generation directive: {e}") from None
    context = BuildContext(settings=settings, base_path=base_path)
    return BindingGenerator(context).run(directive, output_dir)


def generate_manifest(
    manifest: Manifest,
    output_dir: Optional[Path] = None,
    base_path: Optional[str] = None,
    settings: Optional[MoveBindSettings] = None,
) -> List[GeneratedPackage]:
    """Generate every directive of a manifest within one build context.

    ``output_dir`` and ``base_path`` override the manifest's own options.
    """
    options = manifest.generation
    context = BuildContext(settings=settings, base_path=base_path or options.base_path)
    target = output_dir or options.output_dir
    return BindingGenerator(context).run_all(manifest.packages, target)
