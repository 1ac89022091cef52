"""
Build orchestrator that defines the native pipeline for every host
"""

import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..platform import macos_cmake_arch, macos_resource_arch, windows_cmake_arch
from ..publishing import PublishSelector
from ..staging import ArtifactStager, StagingPlan, StagingPolicy
from ..utils import ResourceVerifier
from .base_builder import ArchTarget
from .cmake_builder import CMakeBuilder
from .task_graph import Task, TaskGraph
from .toolchain import ToolchainInvoker

if TYPE_CHECKING:
    from ..settings import BuildSettings

PUBLISH_PLAN_PATH = Path("build") / "publish" / "publish-plan.yaml"


class BuildOrchestrator:
    """Registers the configure/build/stage tasks for each architecture"""

    def __init__(self,
                 settings: "BuildSettings",
                 config: Any,
                 invoker: ToolchainInvoker,
                 logger,
                 stager: Optional[ArtifactStager] = None):
        """
        Initialize build orchestrator

        Args:
            settings: Immutable settings of this run
            config: Configuration loader
            invoker: Runs toolchain subprocesses
            logger: Logger instance
            stager: Artifact stager (created if not given)
        """
        self.settings = settings
        self.config = config
        self.invoker = invoker
        self.logger = logger
        self.stager = stager or ArtifactStager(logger, dry_run=settings.dry_run)
        self.build_config = config.get_option("build_config", "Release")

    # -- targets --------------------------------------------------------

    def _module_paths(self, name: str, arch: str) -> Dict[str, Path]:
        module = self.config.get_module_config(name)
        project_dir = self.settings.root_dir / module["project_dir"]
        return {
            "project_dir": project_dir,
            "source_dir": project_dir / module["native_source_dir"],
            "build_dir": project_dir / module["build_dir"].format(arch=arch),
            "resource_root": project_dir / module["resource_root"],
        }

    def macos_target(self) -> ArchTarget:
        """The host-architecture macOS target"""
        cmake_arch = macos_cmake_arch(self.settings.host_arch)
        module = self.config.get_module_config("macos")
        paths = self._module_paths("macos", cmake_arch)
        return ArchTarget(
            os="macos",
            arch=cmake_arch,
            resource_arch=macos_resource_arch(cmake_arch),
            project_dir=paths["project_dir"],
            source_dir=paths["source_dir"],
            build_dir=paths["build_dir"],
            toolchain_args=[f"-DCMAKE_OSX_ARCHITECTURES={cmake_arch}"],
            build_targets=list(module.get("cmake_targets", [])),
            candidate_output_paths=[paths["build_dir"], paths["build_dir"] / self.build_config],
        )

    def windows_targets(self) -> List[ArchTarget]:
        module = self.config.get_module_config("windows")
        env = {"JAVA_HOME": self.settings.java_home} if self.settings.java_home else {}
        targets = []
        for arch in module.get("architectures", []):
            paths = self._module_paths("windows", arch)
            targets.append(ArchTarget(
                os="windows",
                arch=arch,
                resource_arch=arch,
                project_dir=paths["project_dir"],
                source_dir=paths["source_dir"],
                build_dir=paths["build_dir"],
                toolchain_args=["-A", windows_cmake_arch(arch)],
                candidate_output_paths=[paths["build_dir"] / c for c in module["dll"]["candidates"]],
                env_overrides=env,
            ))
        return targets

    def get_builder(self, target: ArchTarget) -> CMakeBuilder:
        return CMakeBuilder(target, self.invoker, self.logger, build_config=self.build_config)

    # -- staging plans --------------------------------------------------

    def macos_plans(self, target: ArchTarget) -> Dict[str, Any]:
        module = self.config.get_module_config("macos")
        paths = self._module_paths("macos", target.arch)
        framework = module["framework"]
        test_client = module["test_client"]
        stage_dir = target.project_dir / module["stage_dir"]
        zip_path = target.project_dir / module["archive_dir"] / f"{framework['name']}.zip"
        adapter_dir = paths["resource_root"] / "native" / "macos" / "adapter" / target.resource_arch

        return {
            "framework": StagingPlan(
                sources=[target.build_dir / c for c in framework["candidates"]],
                destination=stage_dir / framework["name"],
                policy=StagingPolicy(framework.get("policy", "union")),
            ),
            "archive": StagingPlan(
                sources=[stage_dir / framework["name"]],
                destination=zip_path,
                archive=True,
                archive_root=framework["name"],
                policy=StagingPolicy.FIRST_MATCH,
            ),
            "archive_copy": StagingPlan(
                sources=[zip_path],
                destination=adapter_dir,
            ),
            "test_client": StagingPlan(
                sources=[target.build_dir / c for c in test_client["candidates"]],
                destination=adapter_dir,
                policy=StagingPolicy(test_client.get("policy", "first_match")),
            ),
        }

    def windows_plan(self, target: ArchTarget) -> StagingPlan:
        module = self.config.get_module_config("windows")
        paths = self._module_paths("windows", target.arch)
        return StagingPlan(
            sources=list(target.candidate_output_paths),
            destination=paths["resource_root"] / "native" / "windows" / target.resource_arch,
            include=list(module["dll"].get("include", [])),
            policy=StagingPolicy(module["dll"].get("policy", "union")),
        )

    def required_resources(self) -> Dict[Path, List[str]]:
        """Files the packaging step needs on this host, per resource root"""
        required: Dict[Path, List[str]] = {}
        if self.settings.is_macos:
            target = self.macos_target()
            module = self.config.get_module_config("macos")
            root = self._module_paths("macos", target.arch)["resource_root"]
            required.setdefault(root, []).extend(
                r.format(arch=target.resource_arch) for r in module.get("required_resources", []))
        if self.settings.is_windows:
            module = self.config.get_module_config("windows")
            for target in self.windows_targets():
                root = self._module_paths("windows", target.arch)["resource_root"]
                required.setdefault(root, []).extend(
                    r.format(arch=target.resource_arch) for r in module.get("required_resources", []))
        return required

    # -- graph ----------------------------------------------------------

    def _stage(self, *plans: StagingPlan) -> bool:
        for plan in plans:
            copied = self.stager.stage(plan)
            if copied:
                self.logger.info(f"  staged {len(copied)} file{'s' if len(copied) != 1 else ''} "
                                 f"into {plan.destination}")
        return True

    def _register_macos(self, graph: TaskGraph) -> str:
        is_mac = lambda: self.settings.is_macos  # noqa: E731
        target = self.macos_target()
        builder = self.get_builder(target)
        plans = self.macos_plans(target)

        graph.add_task(Task("cmakeConfigureMacos", builder.configure, predicate=is_mac,
                            description=f"Configure the macOS adapter ({target.arch})"))
        graph.add_task(Task("cmakeBuildMacosAdapter", builder.build,
                            depends_on={"cmakeConfigureMacos"}, predicate=is_mac,
                            description="Build MediaRemoteAdapter and its test client"))
        graph.add_task(Task("stageMacosAdapterFramework",
                            lambda: self._stage(plans["framework"]),
                            depends_on={"cmakeBuildMacosAdapter"}, predicate=is_mac,
                            description="Collect the framework bundle"))
        graph.add_task(Task("zipMacosAdapterFramework",
                            lambda: self._stage(plans["archive"]),
                            depends_on={"stageMacosAdapterFramework"}, predicate=is_mac,
                            description="Archive the framework bundle"))
        graph.add_task(Task("copyMacosAdapterAssets",
                            lambda: self._stage(plans["archive_copy"], plans["test_client"]),
                            depends_on={"zipMacosAdapterFramework", "cmakeBuildMacosAdapter"},
                            predicate=is_mac,
                            description=f"Copy adapter assets for {target.resource_arch}"))
        return "copyMacosAdapterAssets"

    def _register_windows(self, graph: TaskGraph) -> str:
        is_windows = lambda: self.settings.is_windows  # noqa: E731
        copy_tasks = set()
        for target in self.windows_targets():
            suffix = target.task_suffix.replace("Windows", "", 1)
            builder = self.get_builder(target)
            plan = self.windows_plan(target)

            configure_id = f"cmakeConfigureWindows{suffix}"
            build_id = f"cmakeBuildWindows{suffix}"
            copy_id = f"copyWindowsDll{suffix}"
            graph.add_task(Task(configure_id, builder.configure, predicate=is_windows,
                                description=f"Configure the WinRT bridge ({target.arch})"))
            graph.add_task(Task(build_id, builder.build, depends_on={configure_id},
                                predicate=is_windows,
                                description=f"Build the WinRT bridge ({target.arch})"))
            graph.add_task(Task(copy_id, lambda plan=plan: self._stage(plan),
                                depends_on={build_id}, predicate=is_windows,
                                description=f"Copy {target.arch} DLLs"))
            copy_tasks.add(copy_id)

        graph.add_task(Task("copyWindowsDlls", lambda: True, depends_on=copy_tasks,
                            description="Copy DLLs for every Windows architecture"))
        return "copyWindowsDlls"

    def process_resources(self) -> bool:
        """Check every resource the packaging step needs is present"""
        success = True
        for root, required in self.required_resources().items():
            verifier = ResourceVerifier(root, self.logger)
            if self.settings.dry_run:
                for entry in verifier.get_missing_files(required):
                    self.logger.info(f"[DRY RUN] Would require {root / entry}")
                continue
            if not verifier.verify(required):
                success = False
        return success

    def write_publish_plan(self) -> bool:
        selector = PublishSelector(self.config)
        plan = selector.build_plan(self.settings.publish_modules, self.settings.version,
                                   self.settings.destination, self.settings.properties)
        path = self.settings.root_dir / PUBLISH_PLAN_PATH
        if self.settings.dry_run:
            self.logger.info(f"[DRY RUN] Would write publish plan to {path}")
            return True
        plan.write(path)
        self.logger.info(f"Publish plan ({plan.destination.value}, {plan.aggregation_task}): "
                         f"{', '.join(plan.modules)} -> {path}")
        return True

    def create_graph(self) -> TaskGraph:
        """
        Build the task graph for this run

        Returns:
            Validated TaskGraph
        """
        graph = TaskGraph(self.logger, max_workers=self.settings.max_workers)
        graph.add_abort_hook(self.invoker.cancel)

        native_tasks = {self._register_macos(graph), self._register_windows(graph)}
        graph.add_task(Task("processResources", self.process_resources,
                            depends_on=native_tasks,
                            description="Verify staged native resources"))
        graph.add_task(Task("publishAll", self.write_publish_plan,
                            description="Write the publish plan for the selected modules"))
        graph.validate()
        return graph

    # -- maintenance ----------------------------------------------------

    def clean(self) -> List[Path]:
        """
        Remove native build directories and staged resources

        Returns:
            Paths removed
        """
        candidates = []
        macos = self.macos_target()
        module = self.config.get_module_config("macos")
        candidates += [
            macos.build_dir,
            macos.project_dir / module["stage_dir"],
            macos.project_dir / module["archive_dir"],
            self._module_paths("macos", macos.arch)["resource_root"] / "native" / "macos",
        ]
        for target in self.windows_targets():
            candidates += [target.build_dir, self.windows_plan(target).destination]
        candidates.append(self.settings.root_dir / PUBLISH_PLAN_PATH)

        removed = []
        for path in candidates:
            if not path.exists():
                continue
            self.logger.debug(f"Removing {path}")
            if not self.settings.dry_run:
                if path.is_dir():
                    shutil.rmtree(path, ignore_errors=True)
                else:
                    path.unlink(missing_ok=True)
            removed.append(path)
        return removed

    def get_build_info(self) -> Dict[str, Any]:
        """Summary of targets and destination for this run"""
        return {
            "version": self.settings.version,
            "destination": self.settings.destination.value,
            "host": f"{self.settings.host_os} ({self.settings.host_arch})",
            "publish_modules": list(self.settings.publish_modules),
            "targets": [
                {"os": t.os, "arch": t.arch, "resource_arch": t.resource_arch,
                 "build_dir": str(t.build_dir)}
                for t in [self.macos_target()] + self.windows_targets()
            ],
        }


__all__ = ["BuildOrchestrator", "PUBLISH_PLAN_PATH"]
