import os
import sys
import logging
from typing import Dict, Optional

from PIL import Image, ImageTk
import tkinter as tk
from tkinter import ttk, filedialog, messagebox

from vidtagger import config
from vidtagger.controller import FrameState, LibraryController
from vidtagger.library import COLLISION_KEEP_FIRST, COLLISION_OVERWRITE

log = logging.getLogger('vidtagger.tkapp')

LOG_FILENAME = 'vidtagger.log'
POLL_MS = 50
PREVIEW_MAX = 720


def setup_logging() -> None:
	"""Log to a file beside the config and to stderr (INFO level)."""
	log_dir = os.path.dirname(os.path.abspath(config.get_config_path()))
	log_file = os.path.join(log_dir, LOG_FILENAME)
	fmt = logging.Formatter(
		'%(asctime)s [%(levelname)s] %(name)s: %(message)s',
		datefmt='%Y-%m-%d %H:%M:%S',
	)
	root = logging.getLogger('vidtagger')
	root.setLevel(logging.DEBUG)
	root.handlers.clear()
	try:
		fh = logging.FileHandler(log_file, encoding='utf-8')
		fh.setLevel(logging.DEBUG)
		fh.setFormatter(fmt)
		root.addHandler(fh)
	except OSError as e:
		print(f'Cannot log to {log_file}: {e}', file=sys.stderr)
	ch = logging.StreamHandler(sys.stderr)
	ch.setLevel(logging.INFO)
	ch.setFormatter(fmt)
	root.addHandler(ch)
	root.info('Logging to %s', log_file)


class VidTaggerApp:
	def __init__(self, root: tk.Tk, controller: LibraryController) -> None:
		self.root = root
		self.root.title('Simple video tags')
		self.ctl = controller
		self.folder_var = tk.StringVar(value='')
		self.count_var = tk.StringVar(value='')
		self.selected_var = tk.StringVar(value='')
		self.status_var = tk.StringVar(value='')
		self.new_tag_var = tk.StringVar(value='')
		self.scale_var = tk.DoubleVar(value=config.get_size_scale())
		self.volume_var = tk.DoubleVar(value=controller.volume)
		self.untagged_var = tk.BooleanVar(value=controller.settings.untagged_pass)
		self.keep_first_var = tk.BooleanVar(value=controller.settings.collision_policy == COLLISION_KEEP_FIRST)
		self.tag_vars: Dict[str, tk.BooleanVar] = {}
		self.filter_vars: Dict[str, tk.BooleanVar] = {}
		self.preview_photo: Optional[ImageTk.PhotoImage] = None
		self._preview_path: Optional[str] = None
		self._preview_image: Optional[Image.Image] = None
		self._last_error: Optional[str] = None
		self._build_ui()
		self._bind_keys()
		self.root.protocol('WM_DELETE_WINDOW', self._on_close)
		self.root.after(POLL_MS, self._poll)

	def _build_ui(self) -> None:
		menubar = tk.Menu(self.root)
		settings_menu = tk.Menu(menubar, tearoff=0)
		settings_menu.add_checkbutton(label='Show untagged items when filtering', variable=self.untagged_var, command=self.toggle_untagged_pass)
		settings_menu.add_checkbutton(label='Keep first copy of duplicate files', variable=self.keep_first_var, command=self.toggle_collision_policy)
		menubar.add_cascade(label='Settings', menu=settings_menu)
		self.root.config(menu=menubar)

		top = ttk.Frame(self.root, padding=6)
		top.pack(side='top', fill='x')
		self.folder_entry = ttk.Entry(top, textvariable=self.folder_var, state='readonly')
		self.folder_entry.pack(side='left', fill='x', expand=True)
		self.folder_entry.bind('<Button-1>', lambda e: self.pick_folder())
		ttk.Button(top, text='Choose folder', command=self.pick_folder).pack(side='left', padx=4)
		ttk.Button(top, text='Rebuild hashes', command=self.rebuild_hashes).pack(side='left')

		info = ttk.Frame(self.root, padding=(6, 0))
		info.pack(side='top', fill='x')
		ttk.Label(info, textvariable=self.count_var).pack(side='left')
		ttk.Label(info, textvariable=self.selected_var).pack(side='left', padx=12)

		body = ttk.Frame(self.root, padding=6)
		body.pack(side='top', fill='both', expand=True)
		self.preview_label = ttk.Label(body, anchor='center')
		self.preview_label.pack(side='left', fill='both', expand=True)

		side = ttk.Frame(body, padding=(8, 0))
		side.pack(side='right', fill='y')

		nav = ttk.Frame(side)
		nav.pack(side='top', fill='x')
		ttk.Button(nav, text='Prev', command=self.prev).pack(side='left')
		ttk.Button(nav, text='Next', command=self.next).pack(side='left', padx=4)

		ttk.Label(side, text='size scale').pack(side='top', anchor='w', pady=(8, 0))
		ttk.Scale(side, from_=0.0, to=config.MAX_SIZE_SCALE, variable=self.scale_var, command=self._on_scale_change).pack(side='top', fill='x')
		ttk.Label(side, text='volume').pack(side='top', anchor='w', pady=(8, 0))
		ttk.Scale(side, from_=0.0, to=1.0, variable=self.volume_var, command=self._on_volume_change).pack(side='top', fill='x')

		ttk.Separator(side).pack(side='top', fill='x', pady=8)
		ttk.Label(side, text='Tags').pack(side='top', anchor='w')
		self.tags_frame = ttk.Frame(side)
		self.tags_frame.pack(side='top', fill='x')
		add = ttk.Frame(side)
		add.pack(side='top', fill='x', pady=4)
		entry = ttk.Entry(add, textvariable=self.new_tag_var, width=16)
		entry.pack(side='left', fill='x', expand=True)
		entry.bind('<Return>', lambda e: self.add_tag_option())
		ttk.Button(add, text='Add', command=self.add_tag_option).pack(side='left', padx=4)
		ttk.Button(add, text='Remove', command=self.remove_tag_option).pack(side='left')
		ttk.Button(side, text='Save tags', command=self.save_tags).pack(side='top', fill='x')

		ttk.Separator(side).pack(side='top', fill='x', pady=8)
		ttk.Label(side, text='Show only items tagged').pack(side='top', anchor='w')
		self.filter_frame = ttk.Frame(side)
		self.filter_frame.pack(side='top', fill='x')

		ttk.Label(self.root, textvariable=self.status_var, padding=6).pack(side='bottom', fill='x')

	def _bind_keys(self) -> None:
		self.root.bind('<Left>', lambda e: self.prev())
		self.root.bind('<Right>', lambda e: self.next())
		self.root.bind('<Control-s>', lambda e: self.save_tags())

	# Actions reported to the controller

	def pick_folder(self) -> None:
		path = filedialog.askdirectory(initialdir=self.ctl.folder or config.get_last_root_dir() or os.path.abspath('.'))
		if not path:
			return
		config.set_last_root_dir(path)
		self.ctl.pick_folder(path)
		self.render()

	def rebuild_hashes(self) -> None:
		self.ctl.request_rebuild()
		self.render()

	def next(self) -> None:
		self.ctl.next()
		self.render()

	def prev(self) -> None:
		self.ctl.prev()
		self.render()

	def toggle_tag(self, tag: str) -> None:
		self.ctl.set_tag(tag, bool(self.tag_vars[tag].get()))
		self.render()

	def toggle_filter(self, tag: str) -> None:
		self.ctl.toggle_filter_tag(tag)
		self.render()

	def add_tag_option(self) -> None:
		if self.ctl.add_option(self.new_tag_var.get()):
			self.new_tag_var.set('')
		self.render()

	def remove_tag_option(self) -> None:
		name = self.new_tag_var.get().strip()
		if not name:
			return
		purge = messagebox.askyesnocancel('Simple video tags', f'Also remove "{name}" from every tagged item?')
		if purge is None:
			return
		self.ctl.remove_option(name, purge=purge)
		self.new_tag_var.set('')
		self.render()

	def toggle_untagged_pass(self) -> None:
		enabled = bool(self.untagged_var.get())
		config.set_untagged_pass(enabled)
		self.ctl.set_untagged_pass(enabled)
		self.render()

	def toggle_collision_policy(self) -> None:
		policy = COLLISION_KEEP_FIRST if self.keep_first_var.get() else COLLISION_OVERWRITE
		config.set_collision_policy(policy)
		self.ctl.set_collision_policy(policy)
		self.render()

	def save_tags(self) -> None:
		self.ctl.save()
		self.render()

	def _on_scale_change(self, value: object) -> None:
		config.set_size_scale(float(self.scale_var.get()))
		self._render_preview(self.ctl.frame(self.scale_var.get()), force=True)

	def _on_volume_change(self, value: object) -> None:
		self.ctl.set_volume(float(self.volume_var.get()))
		config.set_volume(self.ctl.volume)

	# Rendering

	def render(self) -> None:
		state = self.ctl.frame(self.scale_var.get())
		self.folder_var.set(state.folder or 'click to set path')
		self.count_var.set(f'{len(state.paths)} video files shown')
		if state.index is not None and state.selected_path:
			self.selected_var.set(f'selected: {os.path.basename(state.selected_path)} ({state.index + 1})')
		else:
			self.selected_var.set('')
		if state.error:
			self.status_var.set(state.error)
		elif state.scanning:
			self.status_var.set(state.status or 'Scanning...')
		else:
			self.status_var.set(state.status + (' (unsaved changes)' if self.ctl.dirty else ''))
		self._render_tags(state)
		self._render_filters(state)
		self._render_preview(state)
		if state.error and state.error != self._last_error:
			messagebox.showerror('Simple video tags', state.error)
		self._last_error = state.error

	def _render_tags(self, state: FrameState) -> None:
		for w in self.tags_frame.winfo_children():
			w.destroy()
		self.tag_vars = {}
		if state.selected_path is None:
			ttk.Label(self.tags_frame, text='(nothing selected)').pack(anchor='w')
			return
		for name, checked in state.item_tags.items():
			var = tk.BooleanVar(value=checked)
			self.tag_vars[name] = var
			ttk.Checkbutton(self.tags_frame, text=name, variable=var, command=lambda n=name: self.toggle_tag(n)).pack(anchor='w')

	def _render_filters(self, state: FrameState) -> None:
		for w in self.filter_frame.winfo_children():
			w.destroy()
		self.filter_vars = {}
		for name in state.vocabulary:
			var = tk.BooleanVar(value=name in state.filter_tags)
			self.filter_vars[name] = var
			ttk.Checkbutton(self.filter_frame, text=f'{name} ({state.tag_counts.get(name, 0)})', variable=var, command=lambda n=name: self.toggle_filter(n)).pack(anchor='w')

	def _render_preview(self, state: FrameState, force: bool = False) -> None:
		path = state.selected_path
		if path is None or self.ctl.media is None:
			self._preview_path = None
			self._preview_image = None
			self.preview_photo = None
			self.preview_label.configure(image='', text='')
			return
		if path != self._preview_path:
			self._preview_image = self.ctl.media.read_preview()
			self._preview_path = path
		elif not force:
			return
		if self._preview_image is None or state.media_size is None:
			self.preview_label.configure(image='', text=os.path.basename(path))
			return
		w, h = state.media_size
		scale = min(1.0, PREVIEW_MAX / max(w, h, 1))
		size = (max(1, int(w * scale)), max(1, int(h * scale)))
		self.preview_photo = ImageTk.PhotoImage(self._preview_image.resize(size, Image.LANCZOS))
		self.preview_label.configure(image=self.preview_photo, text='')

	def _poll(self) -> None:
		try:
			if self.ctl.poll_scans():
				self.render()
		finally:
			self.root.after(POLL_MS, self._poll)

	def _on_close(self) -> None:
		if self.ctl.dirty:
			answer = messagebox.askyesnocancel('Simple video tags', 'Save tag changes before closing?')
			if answer is None:
				return
			if answer and not self.ctl.save():
				messagebox.showerror('Simple video tags', self.ctl.error or 'Could not save tags')
				return
		self.ctl.close()
		self.root.destroy()


def main() -> None:
	setup_logging()
	log.info('Simple video tags starting')
	settings = config.load_settings()
	root = tk.Tk()
	try:
		controller = LibraryController.from_settings(settings)
	except OSError as e:
		log.exception('Could not load tags from %s', settings.tags_path)
		messagebox.showerror('Simple video tags', f'Could not load tags from {settings.tags_path}:\n{e}')
		root.destroy()
		sys.exit(1)
	app = VidTaggerApp(root, controller)
	last = config.get_last_root_dir()
	if last and os.path.isdir(last):
		controller.pick_folder(last)
	app.render()
	root.mainloop()


if __name__ == '__main__':
	main()
