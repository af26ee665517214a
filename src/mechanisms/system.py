"""
Mechanism System Module
=======================

Tree of mechanically coupled mechanisms with bulk lifecycle operations
and two-pass feedforward propagation.

Topology:
    Mechanisms live in an arena indexed by stable integer ids. Each child
    has at most one parent; relationships that would create a cycle are
    rejected when they are declared. The root is the first mechanism
    registered unless set explicitly.

System Feedforward:

    Pass 0 (seeding): every mechanism with a setpoint has its state
    projected onto the setpoint and its kind recorded.

    Pass 1 (top-down): starting at the root with zero frame motion,

        F_i       = mechanism_i.get_feedforward(m_i)
        e_i       = m_i + x_i                 x_i = axis_i · position_i
        m_child   = m_i + k(kind_i, kind_child) · e_i

    Pass 2 (bottom-up):

        F_i ← F_i + Σ_children r(kind_i, kind_child) · F_child

    Coupling factors:

        parent    child      k      r
        LINEAR    LINEAR     0.5   -1.0
        LINEAR    ROTATING   0.1   -0.1
        ROTATING  LINEAR     0.1   -0.1
        ROTATING  ROTATING   0.3   -0.5

    A mechanism without a setpoint breaks propagation through its
    subtree but not through its siblings.

Author: Mechanism Control Team
License: MIT
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, List, Dict, Any, Iterator, Set, Tuple
import numpy as np
from numpy.typing import NDArray

from src.physics import zero_vector
from .errors import MechanismConfigError
from .mechanism import Mechanism, MechanismKind, SetPoint

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating]

MOTION_COUPLING: Dict[Tuple[MechanismKind, MechanismKind], float] = {
    (MechanismKind.LINEAR, MechanismKind.LINEAR): 0.5,
    (MechanismKind.LINEAR, MechanismKind.ROTATING): 0.1,
    (MechanismKind.ROTATING, MechanismKind.LINEAR): 0.1,
    (MechanismKind.ROTATING, MechanismKind.ROTATING): 0.3,
}

REACTION_COUPLING: Dict[Tuple[MechanismKind, MechanismKind], float] = {
    (MechanismKind.LINEAR, MechanismKind.LINEAR): -1.0,
    (MechanismKind.LINEAR, MechanismKind.ROTATING): -0.1,
    (MechanismKind.ROTATING, MechanismKind.LINEAR): -0.1,
    (MechanismKind.ROTATING, MechanismKind.ROTATING): -0.5,
}


def child_motion_effect(
    parent_kind: MechanismKind,
    child_kind: MechanismKind,
    parent_motion: FloatArray
) -> FloatArray:
    """Motion a parent imposes on a child of the given kind."""
    return MOTION_COUPLING[(parent_kind, child_kind)] * np.asarray(parent_motion, dtype=float)


def reaction_force(
    parent_kind: MechanismKind,
    child_kind: MechanismKind,
    child_total_force: FloatArray
) -> FloatArray:
    """Reaction a child exerts back on its parent."""
    return REACTION_COUPLING[(parent_kind, child_kind)] * np.asarray(child_total_force, dtype=float)


class MechanismSystem:
    """
    Owner of a rooted tree of mechanisms.

    Setup (register_mechanism, set_parent_child, set_root) may run from
    several threads; after setup the topology is read-only.

    Example:
        >>> system = MechanismSystem("ExampleRobot")
        >>> system.register_mechanism(elevator)
        >>> system.register_mechanism(arm)
        >>> system.set_parent_child("Elevator", "Arm")
        >>>
        >>> # Every tick
        >>> system.update_all_mechanism_states()
        >>> system.execute_all_mechanism_control()
    """

    def __init__(self, system_name: str) -> None:
        """
        Initialize an empty system.

        Args:
            system_name: System identifier
        """
        self._system_name = system_name

        # Arena
        self._mechanisms: List[Mechanism] = []
        self._ids: Dict[str, int] = {}
        self._parents: List[Optional[int]] = []
        self._children: List[List[int]] = []
        self._root: Optional[int] = None
        self._root_explicit = False

        self._topology_lock = threading.RLock()

        logger.info(f"MechanismSystem '{system_name}' created")

    # =========================================================================
    # Topology
    # =========================================================================

    @property
    def system_name(self) -> str:
        return self._system_name

    @property
    def root_mechanism(self) -> Optional[str]:
        """Name of the root mechanism, None while empty."""
        if self._root is None:
            return None
        return self._mechanisms[self._root].name

    def register_mechanism(self, mechanism: Mechanism) -> int:
        """
        Add a mechanism to the system.

        The first mechanism registered becomes the root.

        Returns:
            Stable integer id of the mechanism

        Raises:
            MechanismConfigError: If the name is already taken
        """
        with self._topology_lock:
            if mechanism.name in self._ids:
                logger.error(f"{self._system_name}: duplicate mechanism '{mechanism.name}'")
                raise MechanismConfigError(f"mechanism '{mechanism.name}' already registered")

            index = len(self._mechanisms)
            self._mechanisms.append(mechanism)
            self._ids[mechanism.name] = index
            self._parents.append(None)
            self._children.append([])

            if self._root is None:
                self._root = index

        logger.info(f"{self._system_name}: registered {mechanism.description} (id {index})")
        return index

    def _require(self, name: str) -> int:
        index = self._ids.get(name)
        if index is None:
            logger.error(f"{self._system_name}: unknown mechanism '{name}'")
            raise MechanismConfigError(f"mechanism '{name}' not found")
        return index

    def _ancestors(self, index: int) -> Iterator[int]:
        """Walk parent links upward (excluding the start)."""
        seen: Set[int] = {index}
        parent = self._parents[index]
        while parent is not None and parent not in seen:
            yield parent
            seen.add(parent)
            parent = self._parents[parent]

    def _top_ancestor(self, index: int) -> int:
        top = index
        for ancestor in self._ancestors(index):
            top = ancestor
        return top

    def set_parent_child(self, parent_name: str, child_name: str) -> None:
        """
        Declare that `child_name` rides on `parent_name`.

        Validation happens before any mutation.

        Raises:
            MechanismConfigError: For unknown names, self-links, a child
                that already has a parent, or a link closing a cycle
        """
        with self._topology_lock:
            parent = self._require(parent_name)
            child = self._require(child_name)

            if parent == child:
                raise MechanismConfigError(f"'{parent_name}' cannot be its own parent")
            existing = self._parents[child]
            if existing is not None:
                raise MechanismConfigError(
                    f"'{child_name}' already has parent '{self._mechanisms[existing].name}'"
                )
            if child in self._ancestors(parent):
                raise MechanismConfigError(
                    f"linking '{parent_name}' -> '{child_name}' would create a cycle"
                )

            self._parents[child] = parent
            self._children[parent].append(child)

            # An implicit root that gains a parent hands the role upward
            if child == self._root and not self._root_explicit:
                self._root = self._top_ancestor(parent)
                logger.info(f"{self._system_name}: root is now '{self.root_mechanism}'")

        logger.info(f"{self._system_name}: '{parent_name}' -> '{child_name}'")

    def set_root(self, name: str) -> None:
        """Explicitly choose the root mechanism."""
        with self._topology_lock:
            self._root = self._require(name)
            self._root_explicit = True
        logger.info(f"{self._system_name}: root set to '{name}'")

    def get_mechanism(self, name: str) -> Optional[Mechanism]:
        index = self._ids.get(name)
        return None if index is None else self._mechanisms[index]

    def get_all_mechanisms(self) -> Dict[str, Mechanism]:
        """Copy of the name → mechanism mapping (insertion order)."""
        return {mechanism.name: mechanism for mechanism in self._mechanisms}

    def get_children(self, parent_name: str) -> List[str]:
        """Child names in declaration order (empty for unknown names)."""
        index = self._ids.get(parent_name)
        if index is None:
            return []
        return [self._mechanisms[child].name for child in self._children[index]]

    def get_parent(self, child_name: str) -> Optional[str]:
        index = self._ids.get(child_name)
        if index is None or self._parents[index] is None:
            return None
        return self._mechanisms[self._parents[index]].name

    def __len__(self) -> int:
        return len(self._mechanisms)

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __iter__(self) -> Iterator[Mechanism]:
        return iter(list(self._mechanisms))

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def update_all_mechanism_states(self) -> None:
        """Pull actuator feedback into every mechanism."""
        for mechanism in self:
            mechanism.update_mechanism_state()

    def execute_all_mechanism_control(self) -> None:
        """Command every mechanism toward its setpoint."""
        for mechanism in self:
            mechanism.execute_control()

    def run_cycle(self) -> None:
        """One control tick: each mechanism reads and writes atomically."""
        for mechanism in self:
            mechanism.control_cycle()

    def set_mechanism_setpoints(self, setpoints: Dict[str, SetPoint]) -> None:
        """Apply setpoints by name; unknown names are skipped."""
        for name, setpoint in setpoints.items():
            mechanism = self.get_mechanism(name)
            if mechanism is None:
                logger.debug(f"{self._system_name}: no mechanism '{name}' for setpoint")
                continue
            mechanism.set_target_setpoint(setpoint)

    def are_all_mechanisms_at_target(self) -> bool:
        """True when every mechanism is at target (vacuously true if empty)."""
        return all(mechanism.is_at_target() for mechanism in self)

    def emergency_stop_all_mechanisms(self) -> None:
        """Zero every actuator of every mechanism."""
        logger.warning(f"{self._system_name}: EMERGENCY STOP all mechanisms")
        for mechanism in self:
            mechanism.emergency_stop()

    # =========================================================================
    # System Feedforward
    # =========================================================================

    def calculate_system_feedforward(
        self,
        setpoints: Dict[str, SetPoint]
    ) -> Dict[str, FloatArray]:
        """
        Feedforward for the whole tree including parent/child coupling.

        Projects each named mechanism's state onto its setpoint, then
        runs the top-down and bottom-up passes from the root.

        Args:
            setpoints: Planned setpoint per mechanism name

        Returns:
            Final feedforward vector per reached mechanism name
        """
        kinds = self._seed_states(setpoints)
        forces: Dict[int, FloatArray] = {}

        root = self._root
        if root is None or root not in kinds:
            logger.debug(f"{self._system_name}: root has no setpoint, nothing to propagate")
            return {}

        self._propagate_top_down(root, zero_vector(), kinds, forces, set())
        self._accumulate_bottom_up(root, kinds, forces, set())

        return {self._mechanisms[index].name: force for index, force in forces.items()}

    def _seed_states(self, setpoints: Dict[str, SetPoint]) -> Dict[int, MechanismKind]:
        """Pass 0: project states onto setpoints and record kinds."""
        kinds: Dict[int, MechanismKind] = {}
        for name, setpoint in setpoints.items():
            index = self._ids.get(name)
            if index is None:
                continue
            mechanism = self._mechanisms[index]
            mechanism.project_state(setpoint.position, setpoint.velocity, setpoint.acceleration)
            kinds[index] = mechanism.kind
        return kinds

    def _propagate_top_down(
        self,
        index: int,
        frame_motion: FloatArray,
        kinds: Dict[int, MechanismKind],
        forces: Dict[int, FloatArray],
        visited: Set[int]
    ) -> None:
        """Pass 1: feedforward under the motion inherited from ancestors."""
        if index in visited:
            return
        visited.add(index)

        mechanism = self._mechanisms[index]
        forces[index] = mechanism.get_feedforward(frame_motion)

        effective_motion = frame_motion + mechanism.motion_vector()
        for child in self._children[index]:
            if child not in kinds:
                continue
            effect = child_motion_effect(kinds[index], kinds[child], effective_motion)
            self._propagate_top_down(child, frame_motion + effect, kinds, forces, visited)

    def _accumulate_bottom_up(
        self,
        index: int,
        kinds: Dict[int, MechanismKind],
        forces: Dict[int, FloatArray],
        visited: Set[int]
    ) -> FloatArray:
        """Pass 2: add child reactions; returns this node's total."""
        if index in visited:
            return forces.get(index, zero_vector())
        visited.add(index)

        total_reaction = zero_vector()
        for child in self._children[index]:
            if child not in kinds or child not in forces:
                continue
            child_total = self._accumulate_bottom_up(child, kinds, forces, visited)
            total_reaction = total_reaction + reaction_force(kinds[index], kinds[child], child_total)

        forces[index] = forces.get(index, zero_vector()) + total_reaction
        return forces[index]

    # =========================================================================
    # Monitoring
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get system status for monitoring."""
        return {
            "system_name": self._system_name,
            "root": self.root_mechanism,
            "mechanisms": {m.name: m.get_status() for m in self},
            "relations": {
                m.name: self.get_parent(m.name) for m in self if self.get_parent(m.name)
            },
            "all_at_target": self.are_all_mechanisms_at_target(),
        }
