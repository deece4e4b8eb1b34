"""
Gesture producers. Each one turns its own input into GesturePose samples
and publishes them on the ModulationBus; nothing else is shared with the
transport.
"""
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Optional, Protocol

import mido

from spigot.midi.messages import CC, from_mido
from spigot.routing.modulation import GesturePose, ModulationBus

log = logging.getLogger(__name__)


class GestureSource(Protocol):
    def start(self) -> None: ...
    def stop(self) -> None: ...


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


class DigitControls:
    """
    Structural edits of a dual digit stream while it plays.

    Every edit goes through Transport.edit_digits, so it lands between two
    ticks. In single-stream mode all edits are refused (False / None).
    """

    SNIP_LENGTH = 16

    def __init__(self, transport, tray=None, on_twist: Optional[Callable[[], None]] = None):
        self.transport = transport
        self.tray = tray
        self.on_twist = on_twist
        self._snips = 0

    def twist(self) -> bool:
        """Swap which constant drives durations and which drives pitches."""
        if not self.transport.dual:
            return False

        def swap(source):
            source.twist()
            return source.left.constant, source.right.constant

        left, right = self.transport.edit_digits(swap)
        log.info("[Digits] twist: %s -> durations, %s -> pitches", left.display, right.display)
        if self.on_twist is not None:
            self.on_twist()
        return True

    def pull(self, side: str, steps: int = 1) -> bool:
        """Skip `steps` digits of one stream, putting the two out of step."""
        if side not in ("left", "right"):
            raise ValueError("side must be 'left' or 'right'")
        if not self.transport.dual:
            return False

        def drop(source):
            stream = source.left if side == "left" else source.right
            stream.drop(steps)
            return stream.position

        pos = self.transport.edit_digits(drop)
        log.info("[Digits] pull %s x%d, now at %d", side, steps, pos)
        return True

    def snip(self, length: Optional[int] = None):
        """
        Keep the last `length` pairs of the duration cursor under a fresh
        name and drop them in the tray. Returns the pairs, or None.
        """
        if not self.transport.dual:
            return None
        n = self.SNIP_LENGTH if length is None else int(length)

        def window(source):
            stop = source.left.position
            return max(0, stop - n), stop, source.fork()

        start, stop, fresh = self.transport.edit_digits(window)
        if stop <= start:
            return None
        name = f"snip-{self._snips + 1}"
        # recomputing digits from 0 is slow deep into a stream; keep it off the tick lock
        pairs = fresh.snip(name, start, stop)
        self.transport.edit_digits(lambda source: source.keep(name, pairs))
        self._snips += 1
        if self.tray is not None:
            self.tray.deposit(name, start, pairs)
        log.info("[Digits] %s: %d pairs [%d, %d)", name, len(pairs), start, stop)
        return pairs


class KeyboardGestureSource:
    """
    Simulates a hand from key presses (the visualizer forwards its keys):

      up / down      height  (amplitude)
      left / right   lateral, one semitone per press
      + / -          speed   (tempo, x2 at full scale)
      space          hand in / out of view
      0              back to neutral

    With DigitControls attached, also:

      t              twist the two digit streams
      [ / ]          pull the duration / pitch stream one digit ahead
      x              snip the last pairs into the tray
    """

    HEIGHT_STEP = 0.1
    LATERAL_STEP = 1.0 / 12.0
    SPEED_STEP = 0.25
    DIGIT_KEYS = ("t", "[", "]", "x")

    def __init__(self, bus: ModulationBus, controls: Optional[DigitControls] = None):
        self.bus = bus
        self.controls = controls
        self.pose = GesturePose()
        self._lock = threading.Lock()

    def start(self) -> None:
        self.bus.publish(self.pose)

    def stop(self) -> None:
        pass

    def _digit_key(self, key: str) -> bool:
        if key == "t":
            return self.controls.twist()
        if key == "[":
            return self.controls.pull("left")
        if key == "]":
            return self.controls.pull("right")
        return self.controls.snip() is not None

    def handle_key(self, key: str) -> bool:
        """Apply one key; True if it changed the pose or the digit streams."""
        if self.controls is not None and key in self.DIGIT_KEYS:
            return self._digit_key(key)
        with self._lock:
            p = self.pose
            if key == "up":
                p = replace(p, height=_clamp(p.height + self.HEIGHT_STEP, 0.0, 1.0))
            elif key == "down":
                p = replace(p, height=_clamp(p.height - self.HEIGHT_STEP, 0.0, 1.0))
            elif key == "right":
                p = replace(p, lateral=_clamp(p.lateral + self.LATERAL_STEP, -1.0, 1.0))
            elif key == "left":
                p = replace(p, lateral=_clamp(p.lateral - self.LATERAL_STEP, -1.0, 1.0))
            elif key in ("+", "="):
                p = replace(p, speed=_clamp(p.speed + self.SPEED_STEP, -1.0, 1.0))
            elif key == "-":
                p = replace(p, speed=_clamp(p.speed - self.SPEED_STEP, -1.0, 1.0))
            elif key == " ":
                p = replace(p, present=not p.present)
            elif key == "0":
                p = GesturePose()
            else:
                return False
            self.pose = replace(p, timestamp=time.monotonic())
            pose = self.pose
        self.bus.publish(pose)
        return True


# CC numbers read as hand pose
CC_HEIGHT = 1      # mod wheel
CC_LATERAL = 10    # pan
CC_SPEED = 11      # expression


def _bipolar(value: int) -> float:
    return _clamp((int(value) - 64) / 63.0, -1.0, 1.0)


class MidiControllerGestureSource:
    """
    Reads a MIDI controller on a daemon thread: CC1 -> height, CC10 ->
    lateral, CC11 -> speed (64 is centre for the last two).
    """

    def __init__(self, bus: ModulationBus, port_name: Optional[str] = None,
                 port=None, poll: float = 0.005):
        self.bus = bus
        self.port_name = port_name
        self.port = port
        self.poll = float(poll)
        self.pose = GesturePose()
        self._halt = threading.Event()
        self._th: Optional[threading.Thread] = None

    def handle(self, msg) -> bool:
        ev = from_mido(msg) if isinstance(msg, mido.Message) else msg
        if not isinstance(ev, CC):
            return False
        if ev.control == CC_HEIGHT:
            self.pose = replace(self.pose, height=ev.value / 127.0)
        elif ev.control == CC_LATERAL:
            self.pose = replace(self.pose, lateral=_bipolar(ev.value))
        elif ev.control == CC_SPEED:
            self.pose = replace(self.pose, speed=_bipolar(ev.value))
        else:
            return False
        self.pose = replace(self.pose, timestamp=time.monotonic())
        self.bus.publish(self.pose)
        return True

    def _open(self):
        names = mido.get_input_names()
        wanted = (self.port_name or "").lower()
        name = next((n for n in names if wanted and wanted in n.lower()), None)
        if name is None and not wanted and names:
            name = names[0]
        if name is None:
            log.warning("[Gesture] no MIDI input matching %r (found: %s)", self.port_name, names or "none")
            return None
        log.info("[Gesture] MIDI in: %s", name)
        return mido.open_input(name)

    def start(self) -> None:
        if self.port is None:
            self.port = self._open()
        if self.port is None:
            return
        self._halt.clear()

        def run():
            while not self._halt.is_set():
                for msg in self.port.iter_pending():
                    self.handle(msg)
                self._halt.wait(self.poll)

        self._th = threading.Thread(target=run, name="MidiGesture", daemon=True)
        self._th.start()

    def stop(self) -> None:
        self._halt.set()
        if self._th is not None:
            self._th.join(timeout=1.0)
            self._th = None
        if self.port is not None:
            self.port.close()


# mediapipe hand landmarks
WRIST = 0
MIDDLE_MCP = 9


class HandTrackerGestureSource:
    """
    Camera hand tracking with mediapipe (optional `hand` extra).

    Wrist position gives height and lateral; palm size relative to the
    first detection gives speed, so moving the hand towards the camera
    speeds playback up. No hand in view publishes present=False.
    """

    def __init__(self, bus: ModulationBus, camera: int = 0, fps: float = 30.0):
        self.bus = bus
        self.camera = camera
        self.period = 1.0 / fps
        self._halt = threading.Event()
        self._th: Optional[threading.Thread] = None
        self._ref_size: Optional[float] = None

    def pose_from_landmarks(self, landmarks) -> GesturePose:
        wrist, mcp = landmarks[WRIST], landmarks[MIDDLE_MCP]
        size = ((wrist.x - mcp.x) ** 2 + (wrist.y - mcp.y) ** 2) ** 0.5
        if self._ref_size is None and size > 0:
            self._ref_size = size
        speed = (size / self._ref_size - 1.0) * 2.0 if self._ref_size else 0.0
        # image y grows downward, x is mirrored for a selfie view
        return GesturePose(height=1.0 - wrist.y, lateral=1.0 - 2.0 * wrist.x, speed=speed)

    def start(self) -> None:
        import cv2
        import mediapipe as mp

        cap = cv2.VideoCapture(self.camera)
        if not cap.isOpened():
            log.warning("[Gesture] camera %s unavailable, hand tracking off", self.camera)
            return
        hands = mp.solutions.hands.Hands(max_num_hands=1, min_detection_confidence=0.6)
        self._halt.clear()

        def run():
            try:
                while not self._halt.is_set():
                    ok, frame = cap.read()
                    if not ok:
                        self._halt.wait(self.period)
                        continue
                    result = hands.process(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
                    if result.multi_hand_landmarks:
                        pose = self.pose_from_landmarks(result.multi_hand_landmarks[0].landmark)
                    else:
                        pose = GesturePose(present=False)
                    self.bus.publish(pose)
                    self._halt.wait(self.period)
            finally:
                hands.close()
                cap.release()

        self._th = threading.Thread(target=run, name="HandTracker", daemon=True)
        self._th.start()
        log.info("[Gesture] hand tracking on camera %s", self.camera)

    def stop(self) -> None:
        self._halt.set()
        if self._th is not None:
            self._th.join(timeout=2.0)
            self._th = None
