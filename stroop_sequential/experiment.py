"""High-level PsychoPy orchestration for the sequential Stroop task.

The trial sequencing itself lives in :class:`~stroop_sequential.runner.SessionRunner`;
this module only renders whatever phase the runner is in and forwards
keyboard and mouse input to it.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

from psychopy import core, event, gui, logging, visual
from psychopy.hardware import keyboard

from .config import ExperimentConfig
from .display import ExperimentAbort, StroopScreens, ensure_window_focus
from .engine import Phase, Session
from .export import DataSink, save_local_copy, save_results_csv
from .frames import TrialFrames
from .response import ResponseSignal
from .runner import SessionRunner

STATIC_SCREENS = (Phase.WELCOME, Phase.CONSENT, Phase.INSTRUCTIONS, Phase.INTERBLOCK)
TRIAL_PHASES = (Phase.FIXATION, Phase.STIMULUS, Phase.ITI)


class StroopExperiment:
    """Run one participant through practice and the main blocks."""

    def __init__(self, config: ExperimentConfig | None = None, *, data_sink: DataSink | None = None):
        self.config = config or ExperimentConfig()
        self.runner = SessionRunner(
            self.config,
            data_sink=data_sink,
            time_source=core.monotonicClock.getTime,
        )
        self.participant_info: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # GUI helpers
    # ------------------------------------------------------------------
    def collect_participant_names(self) -> Tuple[str, str]:
        """Ask for the two name fragments used to derive the anonymous code."""

        info = {"First name": "", "Last name": ""}
        while True:
            dialog = gui.DlgFromDict(info, title="Participant identification", screen=-1)
            if not dialog.OK:
                raise ExperimentAbort("Identification dialog cancelled")
            first, last = info["First name"].strip(), info["Last name"].strip()
            if first and last:
                return first, last

    def create_window(self) -> visual.Window:
        if self.config.debug_mode:
            size, fullscr = self.config.debug_window_size, False
        else:
            size, fullscr = self.config.window_size, self.config.full_screen
        return visual.Window(
            size=list(size),
            fullscr=fullscr,
            screen=self.config.screen_index,
            units=self.config.window_units,
            color=list(self.config.background_color),
            allowGUI=self.config.debug_mode,
        )

    def _screen_text(self, session: Session) -> str:
        phase = session.phase
        keys = " / ".join(self.config.continue_keys)
        if phase is Phase.WELCOME:
            return f"Stroop Task - Sequential Context\n\nPress {keys} to begin."
        if phase is Phase.CONSENT:
            return (
                f"Participant code: {session.participant_id}\n\n"
                "Your data are collected anonymously under this code.\n"
                "Participation is voluntary and you may stop at any time.\n\n"
                f"Press {keys} to agree and continue."
            )
        if phase is Phase.INSTRUCTIONS:
            return f"{self.config.instructions_text()}\n\nPress {keys} to start the practice."
        if phase is Phase.INTERBLOCK:
            return (
                f"Pause\n\nYou completed block {session.block} of {self.config.n_blocks}.\n"
                f"Press {keys} when you are ready to continue."
            )
        return ""

    def _finish_text(self, session: Session, saved_to: Optional[Path]) -> str:
        if self.runner.delivery is None:
            status = "Sending data..."
        elif self.runner.delivered:
            status = "Data sent successfully."
        else:
            status = "Warning: the data may not have been sent."
            if saved_to is not None:
                status += f"\nA local copy was saved to {saved_to}."
        prompt = "" if self.runner.delivery is None else "\n\nPress any key to exit."
        return (
            "Task complete. Thank you for participating!\n\n"
            f"Participant code: {session.participant_id}\n"
            f"Total trials: {len(session.log)}\n\n{status}{prompt}"
        )

    def show_finish_screen(self, win: visual.Window, saved_to: Optional[Path]) -> None:
        """Keep the thank-you screen up while the send finishes, then wait for a key."""

        screens = StroopScreens(win, self.config)
        event.clearEvents()
        while True:
            screens.draw_message(self._finish_text(self.runner.session, saved_to))
            win.flip()
            if self.runner.delivery is not None and event.getKeys():
                return

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------
    def _check_quit(self, kb: keyboard.Keyboard) -> None:
        quit_list = list(self.config.quit_keys)
        for key in kb.getKeys(quit_list, waitRelease=False, clear=True):
            if key.name in quit_list:
                raise ExperimentAbort(f"Quit key '{key.name}' pressed")

    def run_session(self, win: visual.Window) -> None:
        """Render the runner's phases until the finish phase is reached."""

        runner = self.runner
        screens = StroopScreens(win, self.config)
        kb = keyboard.Keyboard()
        mouse = event.Mouse(win=win)
        key_to_signal = {key: ResponseSignal(signal) for signal, key in self.config.response_keys.items()}
        frames = TrialFrames(runner, win, kb, key_to_signal)
        mouse_down = False

        runner.add_listener(lambda phase, _session: logging.data(f"phase={phase.value}"))
        runner.start()
        while runner.phase is not Phase.FINISH:
            session = runner.session
            phase = session.phase
            if phase is Phase.IDENTIFICATION:
                first, last = self.collect_participant_names()
                ensure_window_focus(win)
                participant_id = runner.identify(first, last)
                self.participant_info = {"participantId": participant_id}
                kb.clearEvents()
                continue

            if phase in STATIC_SCREENS:
                screens.draw_message(self._screen_text(session))
                win.flip()
                if kb.getKeys(list(self.config.continue_keys), waitRelease=False, clear=True):
                    runner.continue_()
            elif phase in TRIAL_PHASES:
                if phase is Phase.FIXATION:
                    screens.draw_fixation()
                elif phase is Phase.STIMULUS:
                    screens.draw_stimulus(session.current_stimulus)
                frames.before_flip()
                win.flip()
                pressed = screens.pressed_button(mouse)
                frames.after_flip(pressed if not mouse_down else None)
                mouse_down = pressed is not None
            self._check_quit(kb)

    def _save(self, session: Session) -> Path:
        directory = Path(self.config.results_directory)
        save_results_csv(
            session.log,
            session.participant_id,
            directory,
            experiment_name=self.config.experiment_name,
            participant_info=self.participant_info,
        )
        return save_local_copy(session.log, session.participant_id, directory)

    # ------------------------------------------------------------------
    # Experiment entry point
    # ------------------------------------------------------------------
    def run(self) -> None:
        """Execute the full experiment pipeline."""

        results_dir = Path(self.config.results_directory)
        results_dir.mkdir(parents=True, exist_ok=True)
        logging.console.setLevel(logging.WARNING)
        logging.LogFile(str(results_dir / f"{self.config.experiment_name}.log"), level=logging.INFO)

        win = self.create_window()
        aborted = False
        saved_to: Optional[Path] = None
        try:
            self.run_session(win)
        except ExperimentAbort as exc:
            aborted = True
            logging.warning(f"Session aborted: {exc}")
        finally:
            session = self.runner.session
            if session.log:
                saved_to = self._save(session)
                logging.info(f"Saved {len(session.log)} records to {saved_to}")

        if not aborted:
            self.show_finish_screen(win, saved_to)
        win.close()
        core.quit()


__all__ = ["StroopExperiment"]
