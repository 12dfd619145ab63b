"""Page templates rendered with render_template_string."""

TEMPLATE_FORM = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>IC Maps</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body {
      font-family: Arial, Helvetica, sans-serif;
      margin: 0;
      padding: 0;
      background: #f7f9fc;
    }
    .container {
      max-width: 450px;
      margin: 0 auto;
      padding: 1em;
      background: #fff;
      box-shadow: 0 2px 12px #0001;
      border-radius: 1em;
      margin-top: 2em;
    }
    h1 {
      font-size: 2em;
      margin-bottom: .7em;
      text-align: center;
    }
    label {
      font-weight: 600;
      display: block;
      margin-bottom: .2em;
      margin-top: 1.2em;
    }
    select, option {
      width: 100%;
      min-width: 0;
      font-size: 1.2em;
      padding: .7em;
      margin-top: .2em;
      margin-bottom: 1em;
      border: 1px solid #bbb;
      border-radius: .5em;
      background: #f7f9fc;
      box-sizing: border-box;
    }
    .btn {
      width: 100%;
      font-size: 1.2em;
      padding: .7em;
      background: #0077cc;
      color: #fff;
      border: none;
      border-radius: .5em;
      margin-top: .2em;
      margin-bottom: 1em;
      cursor: pointer;
    }
    .btn.secondary { background: #475569; }
    .btn.danger { background: #dc2626; }
    .msg {
      color: #c00;
      margin: .7em 0;
      text-align: center;
      font-size: 1.08em;
    }
    #location-status {
      font-size: 1em;
      display: block;
      margin-bottom: .7em;
      text-align: center;
    }
    .links {
      text-align: center;
      margin-top: 1.7em;
      font-size: 1em;
    }
    .links a { margin: 0 .5em; }
    @media (max-width: 600px) {
      .container {
        max-width: 100vw;
        box-shadow: none;
        border-radius: 0;
        margin-top: 0;
        padding: 0.8em;
      }
      h1 { font-size: 1.3em; }
      select, option, .btn { font-size: 1em; }
    }
  </style>
</head>
<body>
  <div class="container">
    <h1>IC Maps</h1>

    {% with messages = get_flashed_messages() %}
      {% if messages %}
        {% for m in messages %}
          <div class="msg">{{m}}</div>
        {% endfor %}
      {% endif %}
    {% endwith %}

    <form method="post">
      <input type="hidden" name="user_lat" id="user_lat">
      <input type="hidden" name="user_lon" id="user_lon">
      <input type="hidden" name="user_acc" id="user_acc">
      <input type="hidden" name="user_heading" id="user_heading">

      <label for="dest">Where to?</label>
      <select name="dest" id="dest">
        <option value="">-- Select a building --</option>
        {% for b in buildings %}
          <option value="{{b.id}}">{{b.name}}</option>
        {% endfor %}
      </select>

      {% if nav_modes %}
      <label for="nav_mode">Navigation mode</label>
      <select name="nav_mode" id="nav_mode">
        {% for m in nav_modes %}
          <option value="{{m.id}}" {% if m.id|string == cur_nav_mode|string %}selected{% endif %}>{{m.name}}</option>
        {% endfor %}
      </select>
      {% endif %}

      <button type="button" class="btn secondary" id="use-location-btn">Locate me</button>
      <span id="location-status"></span>
      <div style="margin-bottom: 1em; color:#333; font-size:.98em;">
        GPS locations are not stored and only used to build the route.
      </div>

      <button type="submit" class="btn secondary" name="action" value="preview">Show building</button>
      <button type="submit" class="btn" name="action" value="route">Show route</button>
    </form>

    <a class="btn danger" style="display:block;text-align:center;text-decoration:none;box-sizing:border-box"
       href="{{ url_for('bluelight') }}">Emergency: nearest blue light</a>

    <div class="links">
      {% if user %}
        Signed in as {{user.email}} · <a href="{{ url_for('logout') }}">Log out</a>
        {% if user.is_admin or user.is_route_manager %}
          <br><a href="{{ url_for('route_editor') }}">Route editor</a>
        {% endif %}
        {% if user.is_admin %}
          <a href="{{ url_for('building_editor') }}">Building editor</a>
        {% endif %}
      {% else %}
        <a href="{{ url_for('login') }}">Log in</a>
        <a href="{{ url_for('signup') }}">Sign up</a>
      {% endif %}
    </div>
  </div>
  <script>
    document.getElementById('use-location-btn').onclick = function() {
      var status = document.getElementById('location-status');
      status.textContent = "Requesting location…";
      if (!navigator.geolocation) {
        status.textContent = "Geolocation not supported.";
        return;
      }
      navigator.geolocation.getCurrentPosition(function(pos) {
        var lat = pos.coords.latitude;
        var lon = pos.coords.longitude;
        document.getElementById('user_lat').value = lat;
        document.getElementById('user_lon').value = lon;
        document.getElementById('user_acc').value = pos.coords.accuracy || '';
        document.getElementById('user_heading').value = (pos.coords.heading === null ? '' : pos.coords.heading);
        status.innerHTML =
          '<b>Location set:</b> <span style="color:green">' +
          lat.toFixed(6) + ', ' + lon.toFixed(6) +
          ' (±' + Math.round(pos.coords.accuracy || 0) + ' m)</span>';
      }, function(err) {
        status.textContent = "Unable to get location.";
      }, {enableHighAccuracy:true});
    };
  </script>
</body>
</html>
"""

TEMPLATE_RESULT = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{building.name}} · IC Maps</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body{font-family:Arial,Helvetica,sans-serif;margin:1rem}
    ul{margin-top:.5rem}
    li{margin-bottom:.3rem}
    #map{margin-top:1rem}
    a{margin-top:1rem;display:inline-block}
    .stage{color:#475569;font-size:.9em;text-transform:uppercase;letter-spacing:.05em}
    .msg{color:#c00;margin:.5em 0}
    #track-btn,#stop-btn{font-size:1em;padding:.5em 1em;border:none;border-radius:.4em;color:#fff;cursor:pointer}
    #track-btn{background:#0077cc}
    #stop-btn{background:#dc2626;display:none}
    #camera{font-family:monospace;font-size:.9em;color:#334155}
  </style>
</head>
<body>
  <div class="stage">{{stage.label}}</div>
  <h2>{{stage.headline}}: {{building.name}}</h2>
  <p>{{stage.description}}</p>

  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}

  {% if segments %}
    <strong>Total distance: {{'%.1f'|format(total)}} m</strong>
    <ul>
      {% for line, dist in segments %}
        <li>{{line}}</li>
      {% endfor %}
    </ul>
  {% endif %}

  {% if tracking_ready %}
    <button id="track-btn">Start tracking</button>
    <button id="stop-btn">Stop</button>
    <div id="camera"></div>
  {% endif %}

  <div id="map">{{map_html|safe}}</div>
  <a href="{{ url_for('index') }}">⇠ New search</a>

  {% if tracking_ready %}
  <script>
    var watchId = null;
    var cameraBox = document.getElementById('camera');

    function post(url, body) {
      return fetch(url, {
        method: "POST",
        headers: {"Content-Type": "application/json"},
        body: JSON.stringify(body || {})
      }).then(r => r.json());
    }

    function showCamera(d) {
      if (d.error) { cameraBox.innerHTML = '<span style="color:red">' + d.error + '</span>'; return; }
      var c = d.camera;
      cameraBox.textContent = 'lat ' + c.lat.toFixed(6) + ' lng ' + c.lng.toFixed(6) +
        ' bearing ' + Math.round(c.bearing) + '° zoom ' + c.zoom;
    }

    document.getElementById('track-btn').onclick = function() {
      if (!navigator.geolocation) { alert("Geolocation not supported."); return; }
      navigator.geolocation.getCurrentPosition(function(pos) {
        post("/api/track/start", {
          lat: pos.coords.latitude, lng: pos.coords.longitude,
          accuracy: pos.coords.accuracy, heading: pos.coords.heading,
          building: {{building.id|tojson}}, navMode: {{nav_mode|tojson}}
        }).then(function(d) {
          showCamera(d);
          if (d.error) return;
          document.getElementById('track-btn').style.display = 'none';
          document.getElementById('stop-btn').style.display = 'inline-block';
          watchId = navigator.geolocation.watchPosition(function(p) {
            post("/api/track/update", {
              lat: p.coords.latitude, lng: p.coords.longitude,
              accuracy: p.coords.accuracy, heading: p.coords.heading
            }).then(showCamera);
          }, null, {enableHighAccuracy: true, maximumAge: 1000, timeout: 10000});
        });
      }, function() { alert("Unable to get location."); }, {enableHighAccuracy: true});
    };

    window.addEventListener('deviceorientation', function(e) {
      if (watchId === null || e.alpha === null) return;
      var heading = typeof e.webkitCompassHeading === 'number' ? e.webkitCompassHeading : 360 - e.alpha;
      post("/api/track/heading", {heading: heading});
    });

    document.getElementById('stop-btn').onclick = function() {
      if (watchId !== null) navigator.geolocation.clearWatch(watchId);
      watchId = null;
      post("/api/track/stop").then(function() { window.location = "{{ url_for('index') }}"; });
    };
  </script>
  {% endif %}
</body>
</html>
"""

TEMPLATE_BLUELIGHT = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Blue light · IC Maps</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body{font-family:Arial,Helvetica,sans-serif;margin:1rem}
    h2{color:#1d4ed8}
    .msg{color:#c00;margin:.5em 0}
    #status{margin:.7em 0}
    a{margin-top:1rem;display:inline-block}
  </style>
</head>
<body>
  <h2>Nearest blue light phone</h2>

  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}

  {% if map_html %}
    {% if dest %}<p>Heading to blue light <b>{{dest}}</b>.</p>{% endif %}
    <div id="map">{{map_html|safe}}</div>
  {% else %}
    <form method="post" id="bl-form">
      <input type="hidden" name="user_lat" id="user_lat">
      <input type="hidden" name="user_lon" id="user_lon">
      <input type="hidden" name="user_acc" id="user_acc">
      <input type="hidden" name="user_heading" id="user_heading">
    </form>
    <div id="status">Requesting location…</div>
    <script>
      if (!navigator.geolocation) {
        document.getElementById('status').textContent = "Geolocation not supported.";
      } else {
        navigator.geolocation.getCurrentPosition(function(pos) {
          document.getElementById('user_lat').value = pos.coords.latitude;
          document.getElementById('user_lon').value = pos.coords.longitude;
          document.getElementById('user_acc').value = pos.coords.accuracy || '';
          document.getElementById('user_heading').value = (pos.coords.heading === null ? '' : pos.coords.heading);
          document.getElementById('bl-form').submit();
        }, function() {
          document.getElementById('status').textContent = "Location is required to start the emergency route.";
        }, {enableHighAccuracy: true});
      }
    </script>
  {% endif %}
  <a href="{{ url_for('index') }}">⇠ Back to map</a>
</body>
</html>
"""

TEMPLATE_ROUTE_EDITOR = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Route editor · IC Maps</title>
  <style>
    body {font-family:Arial,Helvetica,sans-serif;margin:1rem;}
    #layout {display:flex;gap:1rem;flex-wrap:wrap}
    #map {flex:1;min-width:320px;height:650px;}
    #panel {width:300px}
    #panel section {margin-bottom:1em;padding-bottom:.7em;border-bottom:1px solid #e2e8f0}
    #panel select, #panel input[type=text] {width:100%;padding:.3em;box-sizing:border-box}
    .modes button {margin:.15em;padding:.3em .6em}
    .modes button.active {background:#0077cc;color:#fff}
    #msg {margin-top:.5em;min-height:1.2em}
    #building-order li {cursor:grab;padding:.2em;border:1px solid #cbd5e1;margin:.15em 0;list-style:none}
    .msg {color:#c00}
  </style>
  <link rel="stylesheet" href="https://unpkg.com/leaflet/dist/leaflet.css"/>
</head>
<body>
  <h1>Route editor</h1>
  <a href="{{ url_for('index') }}">⇠ Back to main</a>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <div id="layout">
    <div id="map"></div>
    <div id="panel">
      <section>
        <b>Mode</b>
        <div class="modes" id="modes"></div>
        <label><input type="checkbox" id="bidir"> New edges are bidirectional</label><br>
        <label><input type="checkbox" id="only-nav"> Show only nav-mode edges</label><br>
        <button id="toggle-nodes">Toggle nodes</button>
        <div><small>Alt-click the map to add a node.</small></div>
      </section>
      <section>
        <b>Navigation mode</b>
        <select id="navmode"></select>
        <input type="text" id="navmode-name" placeholder="Name">
        <label><input type="checkbox" id="navmode-from-through"> From/through</label><br>
        <button id="navmode-add">Add</button>
        <button id="navmode-rename">Rename</button>
        <button id="navmode-delete">Delete</button>
      </section>
      <section>
        <b>Building</b>
        <select id="building"><option value="">-- none --</option></select>
        <button id="building-clear">Detach all nodes</button>
        <ol id="building-order"></ol>
      </section>
      <section>
        <a href="{{ url_for('route_editor_api', event='export') }}">Export GeoJSON</a><br>
        <input type="file" id="import-file" accept=".json,.geojson">
      </section>
      <div id="msg"></div>
    </div>
  </div>
  <script src="https://unpkg.com/leaflet/dist/leaflet.js"></script>
<script>
  var state = {{state|tojson}};
  var map = L.map('map').setView([{{view.lat}}, {{view.lng}}], 17);
  L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
    maxZoom: 21, attribution: '&copy; OpenStreetMap contributors'
  }).addTo(map);

  var edgeLayer = L.layerGroup().addTo(map);
  var nodeLayer = L.layerGroup().addTo(map);
  var MODES = ["select", "edit", "delete", "navMode", "buildingGroup", "blueLight"];

  function say(text, err) {
    document.getElementById("msg").innerHTML = err ? '<span style="color:red">' + text + '</span>' : text;
  }

  function send(eventName, body) {
    return fetch("/route-editor/api/" + eventName, {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify(body || {})
    })
    .then(r => r.json())
    .then(d => {
      if (d.error) { say(d.error, true); return fetch("/route-editor/api/state").then(r => r.json()).then(render); }
      say("");
      render(d);
    });
  }

  function navmodes(action, body) {
    return fetch("/navmodes/api/" + action, {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify(body || {})
    })
    .then(r => r.json())
    .then(d => {
      if (d.error) { say(d.error, true); return; }
      send("reload");
    });
  }

  function edgeStyle(p) {
    if (p.path) return {color: '#111827', weight: 6};
    if (p.ada) return {color: '#16a34a', weight: 5};
    return {color: p.bidir ? '#1E88E5' : '#F57C00', weight: 3, dashArray: p.bidir ? null : '6,6'};
  }

  function render(s) {
    state = s;
    edgeLayer.clearLayers();
    nodeLayer.clearLayers();

    L.geoJSON(s.edges, {
      style: f => edgeStyle(f.properties),
      onEachFeature: function(f, layer) {
        layer.bindTooltip(f.properties.from + (f.properties.bidir ? ' ↔ ' : ' → ') + f.properties.to);
        layer.on('click', function(e) {
          L.DomEvent.stopPropagation(e);
          send("edge_click", {key: f.properties.key});
        });
      }
    }).addTo(edgeLayer);

    var navNodes = new Set(s.navModeNodes);
    var bNodes = new Set(s.buildingOrder);
    s.nodes.features.forEach(function(f) {
      var id = f.properties.id;
      var c = f.geometry.coordinates;
      var color = 'blue';
      if (id === s.selectedId) color = 'orange';
      else if (f.properties.isBlueLight) color = '#1d4ed8';
      else if (s.mode === 'navMode' && navNodes.has(id)) color = '#16a34a';
      else if (s.mode === 'buildingGroup' && bNodes.has(id)) color = '#f59e0b';
      var m = L.marker([c[1], c[0]], {
        draggable: s.mode === 'edit',
        icon: L.divIcon({className: '', html: '<div style="width:12px;height:12px;border-radius:6px;background:' + color + ';border:2px solid #fff"></div>'})
      }).addTo(nodeLayer);
      m.bindTooltip(id);
      m.on('click', function(e) {
        L.DomEvent.stopPropagation(e);
        send("marker_click", {id: id});
      });
      m.on('dragend', function() {
        var ll = m.getLatLng();
        send("marker_drag", {id: id, lng: ll.lng, lat: ll.lat});
      });
    });

    var modes = document.getElementById("modes");
    modes.innerHTML = "";
    MODES.forEach(function(mode) {
      var b = document.createElement("button");
      b.textContent = mode;
      if (mode === s.mode) b.className = "active";
      b.onclick = function() { send("mode", {mode: mode}); };
      modes.appendChild(b);
    });
    document.getElementById("bidir").checked = s.biDirectional;
    document.getElementById("only-nav").checked = s.showOnlyNavMode;
    document.getElementById("only-nav").disabled = s.mode !== 'navMode';

    var nm = document.getElementById("navmode");
    nm.innerHTML = "";
    s.navModes.forEach(function(m) {
      var o = document.createElement("option");
      o.value = m.id; o.textContent = m.name;
      if (String(m.id) === String(s.curNavMode)) o.selected = true;
      nm.appendChild(o);
    });

    var bs = document.getElementById("building");
    bs.innerHTML = '<option value="">-- none --</option>';
    s.buildings.forEach(function(b) {
      var o = document.createElement("option");
      o.value = b.id; o.textContent = b.name;
      if (String(b.id) === String(s.currentBuilding)) o.selected = true;
      bs.appendChild(o);
    });

    var order = document.getElementById("building-order");
    order.innerHTML = "";
    s.buildingOrder.forEach(function(id) {
      var li = document.createElement("li");
      li.textContent = id;
      li.draggable = true;
      li.ondragstart = function(e) { e.dataTransfer.setData("text/plain", id); };
      li.ondragover = function(e) { e.preventDefault(); };
      li.ondrop = function(e) {
        e.preventDefault();
        send("building_reorder", {from: e.dataTransfer.getData("text/plain"), over: id});
      };
      order.appendChild(li);
    });
  }

  map.on('click', function(e) {
    send("map_click", {lng: e.latlng.lng, lat: e.latlng.lat, altKey: e.originalEvent.altKey});
  });
  document.getElementById("bidir").onchange = function() { send("bidirectional", {value: this.checked}); };
  document.getElementById("only-nav").onchange = function() { send("show_only_navmode", {value: this.checked}); };
  document.getElementById("toggle-nodes").onclick = function() { send("toggle_nodes"); };
  document.getElementById("navmode").onchange = function() { send("navmode", {id: this.value}); };
  document.getElementById("building").onchange = function() { send("building", {id: this.value || null}); };
  document.getElementById("building-clear").onclick = function() {
    if (confirm("Detach every node from this building?")) send("building_clear");
  };
  document.getElementById("navmode-add").onclick = function() {
    navmodes("add", {
      name: document.getElementById("navmode-name").value,
      fromThrough: document.getElementById("navmode-from-through").checked
    });
  };
  document.getElementById("navmode-rename").onclick = function() {
    navmodes("edit", {id: document.getElementById("navmode").value, name: document.getElementById("navmode-name").value});
  };
  document.getElementById("navmode-delete").onclick = function() {
    if (confirm("Delete this navigation mode?")) navmodes("delete", {id: document.getElementById("navmode").value});
  };
  document.getElementById("import-file").onchange = function() {
    var file = this.files[0];
    if (!file) return;
    file.text().then(function(text) {
      var fc;
      try { fc = JSON.parse(text); } catch (err) { say("Invalid GeoJSON file.", true); return; }
      send("import", {geojson: fc});
    });
  };

  render(state);
</script>
</body>
</html>
"""

TEMPLATE_BUILDING_EDITOR = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Building editor · IC Maps</title>
  <style>
    body {font-family:Arial,Helvetica,sans-serif;margin:1rem;}
    #layout {display:flex;gap:1rem;flex-wrap:wrap}
    #map {flex:1;min-width:320px;height:650px;}
    #panel {width:280px}
    #panel input {width:100%;padding:.3em;box-sizing:border-box}
    #msg {margin-top:.5em;min-height:1.2em}
    .msg {color:#c00}
  </style>
  <link rel="stylesheet" href="https://unpkg.com/leaflet/dist/leaflet.css"/>
  <link rel="stylesheet" href="https://unpkg.com/leaflet-draw/dist/leaflet.draw.css"/>
</head>
<body>
  <h1>Building editor</h1>
  <a href="{{ url_for('index') }}">⇠ Back to main</a>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <div id="layout">
    <div id="map"></div>
    <div id="panel">
      <p>Draw a polygon to add a building. Click a polygon to select it.</p>
      <div id="current">No building selected.</div>
      <input type="text" id="name" placeholder="Building name">
      <button id="rename">Rename</button>
      <button id="remove-polygon">Remove polygon</button>
      <div id="msg"></div>
    </div>
  </div>
  <script src="https://unpkg.com/leaflet/dist/leaflet.js"></script>
  <script src="https://unpkg.com/leaflet-draw/dist/leaflet.draw.js"></script>
<script>
  var state = {{state|tojson}};
  var map = L.map('map').setView([{{view.lat}}, {{view.lng}}], 17);
  L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
    maxZoom: 21, attribution: '&copy; OpenStreetMap contributors'
  }).addTo(map);

  var drawn = new L.FeatureGroup().addTo(map);
  map.addControl(new L.Control.Draw({
    edit: {featureGroup: drawn},
    draw: {polygon: true, polyline: false, rectangle: false, circle: false, marker: false, circlemarker: false}
  }));

  function say(text, err) {
    document.getElementById("msg").innerHTML = err ? '<span style="color:red">' + text + '</span>' : text;
  }

  function send(eventName, body) {
    return fetch("/building-editor/api/" + eventName, {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify(body || {})
    })
    .then(r => r.json())
    .then(d => {
      if (d.error) { say(d.error, true); return; }
      say("");
      render(d);
    });
  }

  function toFeature(layer) {
    var f = layer.toGeoJSON();
    f.id = layer.featureId || ("poly-" + L.stamp(layer) + "-" + Date.now());
    f.properties = Object.assign({}, f.properties, {id: f.id});
    layer.featureId = f.id;
    return f;
  }

  function render(s) {
    state = s;
    drawn.clearLayers();
    L.geoJSON(s.polygons, {
      style: f => ({color: String(f.id) === String((s.current || {}).id) ? '#dc2626' : '#f59e0b', weight: 2}),
      onEachFeature: function(f, layer) {
        layer.featureId = f.id;
        layer.on('click', function() { send("select", {id: f.id}); });
        drawn.addLayer(layer);
      }
    });
    var cur = s.current || {};
    document.getElementById("current").textContent = cur.id ? ("Selected: " + cur.name + " (" + cur.id + ")") : "No building selected.";
    document.getElementById("name").value = cur.name || "";
  }

  map.on(L.Draw.Event.CREATED, function(e) { send("create", {feature: toFeature(e.layer)}); });
  map.on(L.Draw.Event.EDITED, function(e) {
    e.layers.eachLayer(function(layer) { send("update", {feature: toFeature(layer)}); });
  });
  map.on(L.Draw.Event.DELETED, function(e) {
    e.layers.eachLayer(function(layer) { send("delete", {feature: toFeature(layer)}); });
  });
  document.getElementById("rename").onclick = function() {
    send("rename", {name: document.getElementById("name").value});
  };
  document.getElementById("remove-polygon").onclick = function() {
    var cur = state.current || {};
    if (!cur.id) { say("Select a building first.", true); return; }
    send("remove_polygon", {id: cur.id});
  };

  render(state);
</script>
</body>
</html>
"""

_ACCOUNT_HEAD = """
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body{font-family:Arial,Helvetica,sans-serif;max-width:380px;margin:2rem auto;padding:0 1rem}
    input{width:100%;padding:.6em;font-size:1em;margin:.3em 0 .8em;box-sizing:border-box}
    button{padding:.6em 1.2em;font-size:1em}
    .msg{color:#c00;margin:.5em 0}
  </style>
"""

TEMPLATE_LOGIN = """
<!doctype html>
<html lang="en">
<head>
  <title>Log in · IC Maps</title>
""" + _ACCOUNT_HEAD + """
</head>
<body>
  <h2>Log in</h2>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <form method="post">
    <label>Email <input type="email" name="email" required></label>
    <label>Password <input type="password" name="password" required></label>
    <button type="submit">Log in</button>
  </form>
  <p><a href="{{ url_for('reset_request') }}">Forgot password?</a></p>
  <p><a href="{{ url_for('signup') }}">Create an account</a> · <a href="{{ url_for('index') }}">⇠ Back</a></p>
</body>
</html>
"""

TEMPLATE_SIGNUP = """
<!doctype html>
<html lang="en">
<head>
  <title>Sign up · IC Maps</title>
""" + _ACCOUNT_HEAD + """
</head>
<body>
  <h2>Sign up</h2>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <form method="post">
    <label>Name <input type="text" name="name"></label>
    <label>Email <input type="email" name="email" required></label>
    <label>Password <input type="password" name="password" minlength="8" required></label>
    <button type="submit">Create account</button>
  </form>
  <p><a href="{{ url_for('login') }}">Already have an account?</a></p>
</body>
</html>
"""

TEMPLATE_RESET_REQUEST = """
<!doctype html>
<html lang="en">
<head>
  <title>Reset password · IC Maps</title>
""" + _ACCOUNT_HEAD + """
</head>
<body>
  <h2>Reset password</h2>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <form method="post">
    <label>Email <input type="email" name="email" required></label>
    <button type="submit">Send reset link</button>
  </form>
  <p><a href="{{ url_for('login') }}">⇠ Back to login</a></p>
</body>
</html>
"""

TEMPLATE_RESET = """
<!doctype html>
<html lang="en">
<head>
  <title>Choose a new password · IC Maps</title>
""" + _ACCOUNT_HEAD + """
</head>
<body>
  <h2>Choose a new password</h2>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <form method="post" action="{{ url_for('reset_password', token=token) }}">
    <label>New password <input type="password" name="password" minlength="8" required></label>
    <button type="submit">Update password</button>
  </form>
</body>
</html>
"""

TEMPLATE_ADMIN_LOGIN = """
<!doctype html>
<html lang="en">
<head>
  <title>Admin Login</title>
""" + _ACCOUNT_HEAD + """
</head>
<body>
  <h2>Admin Login</h2>
  {% with messages = get_flashed_messages() %}
    {% for m in messages %}<div class="msg">{{m}}</div>{% endfor %}
  {% endwith %}
  <form method="post">
    <label>Password <input type="password" name="password" required></label>
    <button type="submit">Unlock</button>
  </form>
  <p><a href="{{ url_for('index') }}">⇠ Back</a></p>
</body>
</html>
"""
